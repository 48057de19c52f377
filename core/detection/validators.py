"""Per-type format and checksum validators.

Each validator rejects over-long input before doing any structural work
(bounds the cost of pathological candidates), then returns a
:class:`ValidationResult` whose ``confidence`` reflects how much the
structure tells us: a passing checksum is near-certain evidence, a
plausible-looking format much less so.

Validators are looked up through a :class:`ValidatorRegistry` built once
per pipeline (see :func:`build_default_registry`).
"""

from __future__ import annotations

import calendar
import logging
import re
from typing import Optional, Protocol

from models.schemas import Entity, PIIType, ValidationResult

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Confidence levels
# ═══════════════════════════════════════════════════════════════════════════

CHECKSUM_VALID = 0.95
FORMAT_VALID = 0.9
STANDARD = 0.85
KNOWN_VALID = 0.82
MODERATE = 0.75
WEAK = 0.5
INVALID_FORMAT = 0.4
FAILED = 0.3
FALSE_POSITIVE = 0.2


def _ok(confidence: float, reason: Optional[str] = None) -> ValidationResult:
    return ValidationResult(is_valid=True, confidence=confidence, reason=reason)


def _fail(confidence: float, reason: str) -> ValidationResult:
    return ValidationResult(is_valid=False, confidence=confidence, reason=reason)


def _too_long(max_length: int) -> ValidationResult:
    return _fail(FAILED, f"Input exceeds maximum length ({max_length})")


class ValidationRule(Protocol):
    entity_type: PIIType
    name: str
    MAX_LENGTH: int

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult: ...


# ═══════════════════════════════════════════════════════════════════════════
# Locale data
# ═══════════════════════════════════════════════════════════════════════════

MONTH_NAME_TO_NUMBER: dict[str, int] = {
    # en
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11,
    "december": 12,
    # de
    "januar": 1, "februar": 2, "märz": 3, "maerz": 3, "mai": 5, "juni": 6,
    "juli": 7, "oktober": 10, "dezember": 12,
    # fr
    "janvier": 1, "février": 2, "fevrier": 2, "mars": 3, "avril": 4, "juin": 6,
    "juillet": 7, "août": 8, "aout": 8, "septembre": 9, "octobre": 10,
    "novembre": 11, "décembre": 12, "decembre": 12,
    # it
    "gennaio": 1, "febbraio": 2, "marzo": 3, "aprile": 4, "maggio": 5,
    "giugno": 6, "luglio": 7, "agosto": 8, "settembre": 9, "ottobre": 10,
    "dicembre": 12,
}

MONTH_NAMES = frozenset(MONTH_NAME_TO_NUMBER)


# ═══════════════════════════════════════════════════════════════════════════
# IBAN
# ═══════════════════════════════════════════════════════════════════════════

IBAN_LENGTHS: dict[str, int] = {
    "CH": 21, "LI": 21, "DE": 22, "AT": 20, "FR": 27, "IT": 27, "ES": 24,
    "NL": 18, "BE": 16, "LU": 20, "GB": 22, "IE": 22, "PT": 25, "GR": 27,
    "PL": 28, "CZ": 24, "SK": 24, "HU": 28, "SE": 24, "DK": 18, "NO": 15,
    "FI": 18,
}


def iban_mod97(iban: str) -> bool:
    """ISO 7064 mod 97-10 over a compact, upper-case IBAN."""
    rearranged = iban[4:] + iban[:4]
    numeric = "".join(str(ord(ch) - 55) if ch.isalpha() else ch for ch in rearranged)
    if not numeric.isdigit():
        return False
    return int(numeric) % 97 == 1


class IbanValidator:
    entity_type = PIIType.IBAN
    name = "IbanValidator"
    MAX_LENGTH = 42  # 34 chars + grouping spaces

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult:
        if len(entity.text) > self.MAX_LENGTH:
            return _too_long(self.MAX_LENGTH)

        iban = re.sub(r"[\s-]", "", entity.text).upper()
        if len(iban) < 15:
            return _fail(FAILED, f"Too short: {len(iban)} characters")
        if not re.fullmatch(r"[A-Z]{2}\d{2}[A-Z0-9]+", iban):
            return _fail(FAILED, "Not an IBAN shape")

        country = iban[:2]
        expected = IBAN_LENGTHS.get(country)
        if expected and len(iban) != expected:
            return _fail(
                INVALID_FORMAT,
                f"Invalid length for {country}: {len(iban)} (expected {expected})",
            )
        if not iban_mod97(iban):
            return _fail(INVALID_FORMAT, "Checksum validation failed (Mod 97-10)")
        return _ok(CHECKSUM_VALID)


# ═══════════════════════════════════════════════════════════════════════════
# Swiss AVS / AHV (social security)
# ═══════════════════════════════════════════════════════════════════════════

def ean13_check_digit(first12: str) -> int:
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(first12))
    return (10 - total % 10) % 10


class SwissAvsValidator:
    entity_type = PIIType.SWISS_AVS
    name = "SwissAvsValidator"
    MAX_LENGTH = 20

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult:
        if len(entity.text) > self.MAX_LENGTH:
            return _too_long(self.MAX_LENGTH)

        digits = re.sub(r"\D", "", entity.text)
        if len(digits) != 13:
            return _fail(FAILED, f"Invalid length: {len(digits)} digits (expected 13)")
        if not digits.startswith("756"):
            return _fail(FAILED, "Does not start with Swiss country code 756")
        if ean13_check_digit(digits[:12]) != int(digits[12]):
            return _fail(FAILED, "EAN-13 check digit mismatch")
        return _ok(CHECKSUM_VALID)


# ═══════════════════════════════════════════════════════════════════════════
# Email
# ═══════════════════════════════════════════════════════════════════════════

_EMAIL_RE = re.compile(
    r"^[a-z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?"
    r"(?:\.[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?)+$"
)


class EmailValidator:
    entity_type = PIIType.EMAIL
    name = "EmailValidator"
    MAX_LENGTH = 254

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult:
        if len(entity.text) > self.MAX_LENGTH:
            return _too_long(self.MAX_LENGTH)

        email = entity.text.strip().lower()
        if not _EMAIL_RE.match(email):
            return _fail(FAILED, "Does not match email format")
        if ".." in email:
            return _fail(FAILED, "Contains consecutive dots")
        local = email.split("@", 1)[0]
        if len(local) > 64 or local.startswith(".") or local.endswith("."):
            return _fail(INVALID_FORMAT, "Invalid local part")
        tld = email.rsplit(".", 1)[-1]
        if len(tld) < 2 or tld.isdigit():
            return _fail(INVALID_FORMAT, "Invalid TLD")
        return _ok(FORMAT_VALID)


# ═══════════════════════════════════════════════════════════════════════════
# Dates
# ═══════════════════════════════════════════════════════════════════════════

_NUMERIC_DATE_RE = re.compile(r"(\d{1,2})\s*[./-]\s*(\d{1,2})\s*[./-]\s*(\d{2,4})")
_MONTH_NAME_DATE_RE = re.compile(r"(\d{1,2})\.?\s*([^\W\d_]+)\.?\s*(\d{2,4})")


def _expand_year(year: int) -> int:
    if year < 100:
        year += 1900 if year > 30 else 2000
    return year


def parse_date(text: str) -> Optional[tuple[int, int, int]]:
    """Return ``(day, month, year)`` for DD.MM.YYYY or "3 mars 2021" forms."""
    m = _NUMERIC_DATE_RE.search(text)
    if m:
        return int(m.group(1)), int(m.group(2)), _expand_year(int(m.group(3)))
    m = _MONTH_NAME_DATE_RE.search(text.lower())
    if m:
        month = MONTH_NAME_TO_NUMBER.get(m.group(2))
        if month:
            return int(m.group(1)), month, _expand_year(int(m.group(3)))
    return None


class DateValidator:
    entity_type = PIIType.DATE
    name = "DateValidator"
    MAX_LENGTH = 40

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult:
        if len(entity.text) > self.MAX_LENGTH:
            return _too_long(self.MAX_LENGTH)

        parsed = parse_date(entity.text)
        if parsed is None:
            return _fail(INVALID_FORMAT, "Could not parse date")
        day, month, year = parsed
        if not 1 <= month <= 12:
            return _fail(FAILED, f"Invalid month: {month}")
        if not 1900 <= year <= 2100:
            return _fail(INVALID_FORMAT, f"Year out of range: {year}")
        days_in_month = calendar.monthrange(year, month)[1]
        if not 1 <= day <= days_in_month:
            return _fail(FAILED, f"Invalid day: {day} for month {month}")
        return _ok(STANDARD)


# ═══════════════════════════════════════════════════════════════════════════
# VAT / UID
# ═══════════════════════════════════════════════════════════════════════════

_UID_WEIGHTS = (5, 4, 3, 2, 7, 6, 5, 4)
_EU_VAT_RE = re.compile(r"^(DE|FR|IT|AT)\d{8,11}$")


def swiss_uid_valid(digits: str) -> bool:
    """Swiss UID (CHE-xxx.xxx.xxx) mod-11 check digit."""
    total = sum(int(d) * w for d, w in zip(digits[:8], _UID_WEIGHTS))
    check = 11 - total % 11
    if check == 10:
        return False
    return int(digits[8]) == (0 if check == 11 else check)


class VatNumberValidator:
    entity_type = PIIType.VAT_NUMBER
    name = "VatNumberValidator"
    MAX_LENGTH = 30

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult:
        if len(entity.text) > self.MAX_LENGTH:
            return _too_long(self.MAX_LENGTH)

        text = entity.text.upper()
        if text.startswith("CHE"):
            digits = re.sub(r"\D", "", text)
            if len(digits) != 9:
                return _fail(INVALID_FORMAT, f"Invalid Swiss VAT length: {len(digits)} digits")
            if not swiss_uid_valid(digits):
                return _fail(WEAK, "Swiss UID checksum failed")
            return _ok(FORMAT_VALID)

        if _EU_VAT_RE.match(re.sub(r"\s", "", text)):
            return _ok(MODERATE)
        return _fail(INVALID_FORMAT, "Unrecognized VAT format")


# ═══════════════════════════════════════════════════════════════════════════
# Phone
# ═══════════════════════════════════════════════════════════════════════════

_PHONE_COUNTRY_CODES = ("41", "49", "33", "39", "43", "32", "31", "352", "423")
_SWISS_MOBILE_PREFIXES = ("75", "76", "77", "78", "79")


class PhoneValidator:
    entity_type = PIIType.PHONE
    name = "PhoneValidator"
    MAX_LENGTH = 20

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult:
        if len(entity.text) > self.MAX_LENGTH:
            return _too_long(self.MAX_LENGTH)

        digits = re.sub(r"\D", "", entity.text)
        if not 9 <= len(digits) <= 15:
            return _fail(FAILED, f"Invalid length: {len(digits)} digits")

        international = digits[2:] if digits.startswith("00") else digits
        has_country_code = international.startswith(_PHONE_COUNTRY_CODES)
        is_local = digits.startswith("0") and not digits.startswith("00")

        if not has_country_code and not is_local:
            return _fail(WEAK, "No recognized country code")

        national = international[2:] if international.startswith("41") else digits[1:]
        if (international.startswith("41") or is_local) and national.startswith(_SWISS_MOBILE_PREFIXES):
            return _ok(FORMAT_VALID)
        return _ok(MODERATE)


# ═══════════════════════════════════════════════════════════════════════════
# Postal codes / postal-code-plus-city spans
# ═══════════════════════════════════════════════════════════════════════════

SWISS_POSTAL_MIN = 1000
SWISS_POSTAL_MAX = 9699

_NON_CITY_WORDS = frozenset({
    "attestation", "rapport", "report", "bericht", "document", "dokument",
    "contrat", "contract", "vertrag", "contratto", "version", "edition",
    "ausgabe", "edizione", "année", "annee", "year", "jahr", "anno",
    "pour", "and", "oder", "from", "with", "date", "depuis", "since", "ab",
    "fondation", "stiftung", "fondazione", "total", "chf", "eur",
})

# Swiss towns whose postal codes (19xx/20xx) look like years
_KNOWN_CITIES_IN_YEAR_RANGE = frozenset({
    "sion", "sierre", "martigny", "monthey", "saxon", "fully", "leytron",
    "chamoson", "conthey", "vétroz", "vetroz", "ardon", "riddes", "saillon",
    "neuchâtel", "neuchatel", "boudry", "cortaillod", "colombier",
    "auvernier", "bevaix", "gorgier",
})

_DATE_KEYWORD_BEFORE = re.compile(
    r"\b(?:date|depuis|since|ab|from|le|am|on|year|année|annee|jahr|anno|"
    r"en|im|in|vom|du)\s*[:.]?\s*$",
    re.IGNORECASE,
)
_DATE_PREFIX_BEFORE = re.compile(r"\d{1,2}[./]\d{1,2}[./]?\s*$")
_STREET_CONTEXT = re.compile(
    r"(?:Rue|Route|Rte|Chemin|Strasse|Str\.|Via|Avenue|Av\.|weg|gasse)",
    re.IGNORECASE,
)
_POSTAL_CITY_RE = re.compile(r"^(?:CH[-\s]?)?([1-9]\d{3})\s+(.+)$", re.DOTALL)


def is_swiss_postal_code(code: int) -> bool:
    return SWISS_POSTAL_MIN <= code <= SWISS_POSTAL_MAX


class SwissPostalCodeValidator:
    """Range-only fallback for ``SWISS_ADDRESS`` spans."""

    entity_type = PIIType.SWISS_ADDRESS
    name = "SwissPostalCodeValidator"
    MAX_LENGTH = 100

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult:
        if len(entity.text) > self.MAX_LENGTH:
            return _too_long(self.MAX_LENGTH)
        m = re.search(r"\b([1-9]\d{3})\b", entity.text)
        if not m:
            return _fail(INVALID_FORMAT, "No valid postal code found")
        code = int(m.group(1))
        if not is_swiss_postal_code(code):
            return _fail(WEAK, f"Postal code {code} outside Swiss range")
        return _ok(STANDARD)


class SwissAddressValidator:
    """``"1000 Lausanne"`` style spans, with year-lookalike rejection."""

    entity_type = PIIType.SWISS_ADDRESS
    name = "SwissAddressValidator"
    MAX_LENGTH = 200

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult:
        if len(entity.text) > self.MAX_LENGTH:
            return _too_long(self.MAX_LENGTH)

        m = _POSTAL_CITY_RE.match(entity.text.strip())
        if not m:
            return _fail(INVALID_FORMAT, "No postal code followed by a city")
        code = int(m.group(1))
        city = m.group(2).strip()
        if not is_swiss_postal_code(code):
            return _fail(FAILED, f"Postal code {code} outside Swiss range")
        if len(city) < 2:
            return _fail(FAILED, f"City name too short: {city!r}")

        first_word = city.split()[0].lower()
        if 1900 <= code <= 2099:
            result = self._check_year_lookalike(entity, first_word, context_text)
            if result is not None:
                return result
        if first_word in _NON_CITY_WORDS:
            return _fail(INVALID_FORMAT, f"{first_word!r} is not a city name")
        return _ok(KNOWN_VALID)

    @staticmethod
    def _check_year_lookalike(
        entity: Entity, first_word: str, context_text: str,
    ) -> Optional[ValidationResult]:
        if first_word in _KNOWN_CITIES_IN_YEAR_RANGE:
            return _ok(STANDARD, f"Known Swiss city: {first_word!r}")
        if first_word in MONTH_NAMES:
            return _fail(FALSE_POSITIVE, f"Year followed by month name {first_word!r}")
        if first_word in _NON_CITY_WORDS:
            return _fail(FAILED, f"Year followed by non-city word {first_word!r}")
        if context_text:
            before = context_text[max(0, entity.start - 20):entity.start]
            if _DATE_PREFIX_BEFORE.search(before):
                return _fail(FALSE_POSITIVE, "Preceded by a day/month prefix")
            if _DATE_KEYWORD_BEFORE.search(before):
                return _fail(FAILED, "Preceded by a date keyword")
            after = context_text[entity.end:entity.end + 15]
            if re.match(r"^\s*[.;,!?\n]", after):
                wide_before = context_text[max(0, entity.start - 50):entity.start]
                if not _STREET_CONTEXT.search(wide_before):
                    return _fail(INVALID_FORMAT, "Year at sentence end without street context")
        return None


class EuPostalAddressValidator:
    """``"80331 München"`` / ``"75008 Paris"`` style spans."""

    entity_type = PIIType.EU_ADDRESS
    name = "EuPostalAddressValidator"
    MAX_LENGTH = 200

    def validate(self, entity: Entity, context_text: str = "") -> ValidationResult:
        if len(entity.text) > self.MAX_LENGTH:
            return _too_long(self.MAX_LENGTH)
        m = re.match(r"^(?:[DFA][-\s]?)?(\d{5})\s+(\S.*)$", entity.text.strip(), re.DOTALL)
        if not m:
            return _fail(INVALID_FORMAT, "No 5-digit postal code followed by a city")
        if m.group(1) == "00000":
            return _fail(FAILED, "All-zero postal code")
        first_word = m.group(2).split()[0].lower()
        if first_word in _NON_CITY_WORDS or first_word in MONTH_NAMES:
            return _fail(INVALID_FORMAT, f"{first_word!r} is not a city name")
        return _ok(MODERATE)


# ═══════════════════════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════════════════════

class ValidatorRegistry:
    """Type → validator lookup, built once and frozen."""

    def __init__(self) -> None:
        self._validators: dict[PIIType, tuple[ValidationRule, int]] = {}
        self._frozen = False

    def register(self, validator: ValidationRule, priority: int = 0) -> None:
        """Register *validator*; a higher *priority* replaces an existing one."""
        if self._frozen:
            raise RuntimeError(f"Registry is frozen; cannot register {validator.name}")
        existing = self._validators.get(validator.entity_type)
        if existing is None or priority > existing[1]:
            self._validators[validator.entity_type] = (validator, priority)

    def get(self, entity_type: PIIType) -> Optional[ValidationRule]:
        entry = self._validators.get(entity_type)
        return entry[0] if entry else None

    def has(self, entity_type: PIIType) -> bool:
        return entity_type in self._validators

    def all(self) -> list[ValidationRule]:
        return [v for v, _ in self._validators.values()]

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._validators)


def build_default_registry() -> ValidatorRegistry:
    registry = ValidatorRegistry()
    registry.register(IbanValidator())
    registry.register(SwissAvsValidator())
    registry.register(EmailValidator())
    registry.register(DateValidator())
    registry.register(VatNumberValidator())
    registry.register(PhoneValidator())
    registry.register(SwissPostalCodeValidator())
    registry.register(SwissAddressValidator(), priority=10)
    registry.register(EuPostalAddressValidator())
    registry.freeze()
    logger.debug("Validator registry built with %d validators", len(registry))
    return registry
