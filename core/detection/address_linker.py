"""Group address components that sit close together into candidate addresses.

Components are walked left to right.  A component joins the current group
when the gap from the group's end is at most ``proximity`` characters on
the same line, or ``newline_proximity`` across a single line break
(postal address blocks are usually written over two lines).  A component
type already present in the group, or one that cannot follow the previous
component (nothing follows a country), starts a new group, so two
addresses written back to back stay apart.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from core.detection import detection_config as det_cfg
from models.schemas import AddressComponent, AddressComponentType as C, AddressPattern

logger = logging.getLogger(__name__)

# Component types allowed to follow the last component of a group
_NEXT: dict[C, frozenset[C]] = {
    C.STREET_NAME: frozenset({C.STREET_NUMBER, C.POSTAL_CODE, C.CITY}),
    C.STREET_NUMBER: frozenset({C.STREET_NAME, C.POSTAL_CODE, C.CITY}),
    C.POSTAL_CODE: frozenset({C.CITY, C.COUNTRY, C.STREET_NAME, C.STREET_NUMBER}),
    C.CITY: frozenset({C.POSTAL_CODE, C.COUNTRY, C.STREET_NAME, C.STREET_NUMBER}),
    C.COUNTRY: frozenset(),
}


@dataclass
class AddressGroup:
    components: list[AddressComponent] = field(default_factory=list)
    text: str = ""
    pattern: AddressPattern = AddressPattern.NONE

    @property
    def start(self) -> int:
        return self.components[0].start

    @property
    def end(self) -> int:
        return max(c.end for c in self.components)

    @property
    def types(self) -> set[C]:
        return {c.type for c in self.components}

    def first(self, ctype: C) -> AddressComponent | None:
        for comp in self.components:
            if comp.type == ctype:
                return comp
        return None


class AddressLinker:
    """Proximity grouping plus order-pattern classification."""

    def __init__(
        self,
        proximity: int = det_cfg.ADDRESS_PROXIMITY,
        newline_proximity: int = det_cfg.ADDRESS_NEWLINE_PROXIMITY,
        min_components: int = det_cfg.ADDRESS_MIN_COMPONENTS,
    ) -> None:
        self.proximity = proximity
        self.newline_proximity = newline_proximity
        self.min_components = min_components

    def link(self, text: str, components: list[AddressComponent]) -> list[AddressGroup]:
        groups: list[AddressGroup] = []
        current: list[AddressComponent] = []

        for comp in sorted(components, key=lambda c: (c.start, c.end)):
            if current and self._joins(text, current, comp):
                current.append(comp)
                continue
            if current:
                groups.append(self._finish(text, current))
            current = [comp]
        if current:
            groups.append(self._finish(text, current))

        kept = [g for g in groups if len(g.components) >= self.min_components]
        logger.debug("Linked %d components into %d address groups", len(components), len(kept))
        return kept

    def _joins(self, text: str, current: list[AddressComponent], comp: AddressComponent) -> bool:
        if comp.type in {c.type for c in current}:
            return False
        if comp.type not in _NEXT[current[-1].type]:
            return False
        end = max(c.end for c in current)
        gap = text[end:comp.start]
        newlines = gap.count("\n")
        if newlines == 0:
            return len(gap) <= self.proximity
        if newlines == 1:
            return len(gap) <= self.newline_proximity
        return False

    def _finish(self, text: str, components: list[AddressComponent]) -> AddressGroup:
        group = AddressGroup(components=list(components))
        group.text = text[group.start:group.end]
        group.pattern = classify(group)
        return group


def _is_five_digit(postal: AddressComponent) -> bool:
    return sum(ch.isdigit() for ch in postal.text) == 5


def _block_order(street: AddressComponent, number: AddressComponent,
                 postal: AddressComponent, city: AddressComponent) -> str | None:
    """``"standard"`` when street+number precede postal+city, ``"inverted"``
    for the reverse, ``None`` when the two blocks interleave."""
    street_block = (street, number)
    locality_block = (postal, city)
    if postal.start > city.start:
        return None
    if max(c.start for c in street_block) < min(c.start for c in locality_block):
        return "standard"
    if max(c.start for c in locality_block) < min(c.start for c in street_block):
        return "inverted"
    return None


def classify(group: AddressGroup) -> AddressPattern:
    """Match a group against the known address orderings.

    Full patterns need street, number, postal code and city in one of two
    orders: ``[Street] [Number], [Postal] [City] (, [Country])`` or the
    inverted ``[Postal] [City], [Street] [Number]``.  Any other order is
    PARTIAL.  The postal code's shape picks SWISS (4 digits) or EU
    (5 digits, or a non-Swiss country named).
    """
    types = group.types
    street = group.first(C.STREET_NAME)
    number = group.first(C.STREET_NUMBER)
    postal = group.first(C.POSTAL_CODE)
    city = group.first(C.CITY)

    if street and number and postal and city and _block_order(street, number, postal, city):
        country = group.first(C.COUNTRY)
        if _is_five_digit(postal):
            return AddressPattern.EU
        if country is not None and country.text.lower() not in _SWISS_COUNTRY_NAMES:
            return AddressPattern.EU
        return AddressPattern.SWISS

    if (C.STREET_NAME in types or C.STREET_NUMBER in types) and (
        C.POSTAL_CODE in types or C.CITY in types
    ):
        return AddressPattern.PARTIAL
    if C.POSTAL_CODE in types and C.CITY in types:
        return AddressPattern.PARTIAL
    return AddressPattern.NONE


_SWISS_COUNTRY_NAMES = frozenset({"switzerland", "suisse", "schweiz", "svizzera", "ch"})
