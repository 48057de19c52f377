"""Context vocabulary per PII type and language.

Field labels, salutations and other words that make a nearby detection
more (positive) or less (negative) likely.  Used by
:class:`~core.detection.context_enhancer.ContextEnhancer`.

Weights are 0.0–1.0; higher is a stronger signal.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from models.schemas import PIIType


class ContextWord(NamedTuple):
    word: str
    weight: float = 1.0
    positive: bool = True


def pos(word: str, weight: float = 1.0) -> ContextWord:
    return ContextWord(word, weight, True)


def neg(word: str, weight: float = 0.8) -> ContextWord:
    return ContextWord(word, weight, False)


# ---------------------------------------------------------------------------
# Shared fragments
# ---------------------------------------------------------------------------

_COMPANY_SUFFIXES_NEG = [
    neg("ltd", 1.0), neg("inc", 1.0), neg("corp", 1.0), neg("llc", 1.0),
    neg("gmbh", 1.0), neg("ag", 0.9), neg("sàrl", 1.0),
    neg("sarl", 1.0), neg("srl", 1.0), neg("holding", 0.9), neg("group", 0.8),
]

_ADDRESS_WORDS = {
    "en": [
        pos("address", 1.0), pos("street", 0.8), pos("postal", 0.8), pos("zip", 0.8),
        pos("city", 0.7), pos("residence", 0.8), pos("deliver", 0.6), pos("ship to", 0.8),
    ],
    "fr": [
        pos("adresse", 1.0), pos("domicile", 0.9), pos("npa", 0.9), pos("code postal", 0.9),
        pos("localité", 0.8), pos("ville", 0.7), pos("livraison", 0.7), pos("résidence", 0.8),
    ],
    "de": [
        pos("adresse", 1.0), pos("anschrift", 1.0), pos("wohnort", 0.9), pos("wohnhaft", 0.9),
        pos("plz", 0.9), pos("postleitzahl", 0.9), pos("ort", 0.6), pos("lieferung", 0.7),
    ],
    "it": [
        pos("indirizzo", 1.0), pos("domicilio", 0.9), pos("residenza", 0.9), pos("cap", 0.8),
        pos("località", 0.8), pos("città", 0.7), pos("consegna", 0.7),
    ],
}

# ---------------------------------------------------------------------------
# Lexicon
# ---------------------------------------------------------------------------

CONTEXT_WORDS: dict[PIIType, dict[str, list[ContextWord]]] = {
    PIIType.PERSON: {
        "en": [
            pos("mr", 1.0), pos("mrs", 1.0), pos("ms", 1.0), pos("dr", 1.0),
            pos("prof", 1.0), pos("name", 0.9), pos("full name", 1.0),
            pos("first name", 0.9), pos("last name", 0.9), pos("surname", 0.9),
            pos("dear", 0.7), pos("contact", 0.8), pos("attn", 0.8),
            pos("signed", 0.6), pos("employee", 0.7), pos("customer", 0.7),
            pos("client", 0.7), pos("patient", 0.8),
            neg("lorem", 0.7), neg("ipsum", 0.7), neg("placeholder", 0.8),
            neg("street", 0.9), neg("road", 0.9), neg("avenue", 0.9),
            *_COMPANY_SUFFIXES_NEG,
        ],
        "fr": [
            pos("m.", 1.0), pos("mme", 1.0), pos("mlle", 1.0), pos("monsieur", 1.0),
            pos("madame", 1.0), pos("nom", 0.9), pos("prénom", 0.9),
            pos("nom de famille", 0.9), pos("cher", 0.7), pos("chère", 0.7),
            pos("destinataire", 0.8), pos("signé", 0.6), pos("employé", 0.7),
            pos("client", 0.7), pos("patient", 0.8),
            neg("rue", 0.9), neg("avenue", 0.9), neg("chemin", 0.9),
            neg("boulevard", 0.9), *_COMPANY_SUFFIXES_NEG,
        ],
        "de": [
            pos("herr", 1.0), pos("frau", 1.0), pos("dr.", 1.0), pos("prof.", 1.0),
            pos("sehr geehrter", 1.0), pos("sehr geehrte", 1.0), pos("name", 0.9),
            pos("vorname", 0.9), pos("nachname", 0.9), pos("familienname", 0.9),
            pos("empfänger", 0.8), pos("mitarbeiter", 0.7), pos("kunde", 0.7),
            pos("patient", 0.8), pos("unterschrieben", 0.6),
            neg("strasse", 0.9), neg("straße", 0.9), neg("gasse", 0.9),
            *_COMPANY_SUFFIXES_NEG,
        ],
        "it": [
            pos("sig.", 1.0), pos("sig.ra", 1.0), pos("signor", 1.0), pos("signora", 1.0),
            pos("dott.", 1.0), pos("nome", 0.9), pos("cognome", 0.9),
            pos("gentile", 0.7), pos("egregio", 0.8), pos("destinatario", 0.8),
            pos("cliente", 0.7), pos("paziente", 0.8),
            neg("via", 0.9), neg("piazza", 0.9), neg("viale", 0.9),
            *_COMPANY_SUFFIXES_NEG,
        ],
    },
    PIIType.PHONE: {
        "en": [
            pos("phone", 1.0), pos("tel", 1.0), pos("telephone", 1.0), pos("mobile", 1.0),
            pos("cell", 0.9), pos("fax", 0.8), pos("call", 0.7), pos("number", 0.6),
            neg("order", 0.7), neg("invoice", 0.7), neg("reference", 0.7),
        ],
        "fr": [
            pos("téléphone", 1.0), pos("tél", 1.0), pos("mobile", 1.0), pos("portable", 1.0),
            pos("natel", 1.0), pos("fax", 0.8), pos("appeler", 0.7), pos("numéro", 0.6),
            neg("commande", 0.7), neg("facture", 0.7), neg("référence", 0.7),
        ],
        "de": [
            pos("telefon", 1.0), pos("tel", 1.0), pos("mobil", 1.0), pos("handy", 1.0),
            pos("natel", 1.0), pos("fax", 0.8), pos("anrufen", 0.7), pos("nummer", 0.6),
            neg("bestellung", 0.7), neg("rechnung", 0.7), neg("referenz", 0.7),
        ],
        "it": [
            pos("telefono", 1.0), pos("tel", 1.0), pos("cellulare", 1.0), pos("natel", 1.0),
            pos("fax", 0.8), pos("chiamare", 0.7), pos("numero", 0.6),
            neg("ordine", 0.7), neg("fattura", 0.7), neg("riferimento", 0.7),
        ],
    },
    PIIType.EMAIL: {
        "en": [
            pos("email", 1.0), pos("e-mail", 1.0), pos("mail", 0.8), pos("contact", 0.7),
            pos("write", 0.6), pos("reply", 0.6),
            neg("example.com", 0.9), neg("test.com", 0.9), neg("placeholder", 0.8),
        ],
        "fr": [
            pos("courriel", 1.0), pos("e-mail", 1.0), pos("email", 1.0), pos("mail", 0.8),
            pos("écrire", 0.6), pos("contact", 0.7), neg("exemple.com", 0.9),
        ],
        "de": [
            pos("e-mail", 1.0), pos("email", 1.0), pos("mail", 0.8), pos("kontakt", 0.7),
            pos("schreiben", 0.6), neg("beispiel.com", 0.9),
        ],
        "it": [
            pos("e-mail", 1.0), pos("email", 1.0), pos("posta elettronica", 1.0),
            pos("contatto", 0.7), pos("scrivere", 0.6), neg("esempio.com", 0.9),
        ],
    },
    PIIType.ADDRESS: _ADDRESS_WORDS,
    PIIType.SWISS_ADDRESS: _ADDRESS_WORDS,
    PIIType.EU_ADDRESS: _ADDRESS_WORDS,
    PIIType.IBAN: {
        "en": [
            pos("iban", 1.0), pos("account", 0.9), pos("bank", 0.8), pos("bank account", 1.0),
            pos("transfer", 0.7), pos("payment", 0.7), pos("swift", 0.8), pos("bic", 0.8),
        ],
        "fr": [
            pos("iban", 1.0), pos("compte", 0.9), pos("compte bancaire", 1.0), pos("banque", 0.8),
            pos("virement", 0.8), pos("paiement", 0.7), pos("bic", 0.8),
        ],
        "de": [
            pos("iban", 1.0), pos("konto", 0.9), pos("bankkonto", 1.0), pos("bank", 0.8),
            pos("überweisung", 0.8), pos("zahlung", 0.7), pos("bic", 0.8),
        ],
        "it": [
            pos("iban", 1.0), pos("conto", 0.9), pos("conto bancario", 1.0), pos("banca", 0.8),
            pos("bonifico", 0.8), pos("pagamento", 0.7), pos("bic", 0.8),
        ],
    },
    PIIType.SWISS_AVS: {
        "en": [pos("avs", 1.0), pos("ahv", 1.0), pos("social security", 1.0), pos("ssn", 0.9),
               pos("insurance number", 0.9)],
        "fr": [pos("avs", 1.0), pos("numéro avs", 1.0), pos("n° avs", 1.0),
               pos("sécurité sociale", 1.0), pos("assurance sociale", 0.9)],
        "de": [pos("ahv", 1.0), pos("ahv-nummer", 1.0), pos("ahv-nr", 1.0),
               pos("sozialversicherung", 1.0), pos("versicherungsnummer", 0.9)],
        "it": [pos("avs", 1.0), pos("numero avs", 1.0), pos("assicurazione sociale", 0.9),
               pos("sicurezza sociale", 1.0)],
    },
    PIIType.DATE: {
        "en": [
            pos("date of birth", 1.0), pos("born", 1.0), pos("birthday", 1.0), pos("dob", 1.0),
            pos("birth", 0.9), pos("issued", 0.6), pos("expires", 0.6),
            neg("invoice date", 0.8), neg("order date", 0.8), neg("due date", 0.8),
        ],
        "fr": [
            pos("date de naissance", 1.0), pos("né", 1.0), pos("née", 1.0),
            pos("naissance", 0.9), pos("émis", 0.6), pos("expiration", 0.6),
            neg("date de facture", 0.8), neg("échéance", 0.8),
        ],
        "de": [
            pos("geburtsdatum", 1.0), pos("geboren", 1.0), pos("geb.", 1.0),
            pos("geburt", 0.9), pos("ausgestellt", 0.6), pos("gültig", 0.6),
            neg("rechnungsdatum", 0.8), neg("bestelldatum", 0.8), neg("fälligkeitsdatum", 0.8),
        ],
        "it": [
            pos("data di nascita", 1.0), pos("nato", 1.0), pos("nata", 1.0),
            pos("nascita", 0.9), pos("rilasciato", 0.6), pos("scadenza", 0.6),
            neg("data fattura", 0.8),
        ],
    },
    PIIType.ORGANIZATION: {
        "en": [pos("company", 1.0), pos("corporation", 1.0), pos("organization", 0.9),
               pos("employer", 0.9), pos("firm", 0.8), pos("ltd", 0.9), pos("inc", 0.9)],
        "fr": [pos("société", 1.0), pos("entreprise", 1.0), pos("employeur", 0.9),
               pos("organisation", 0.9), pos("sa", 0.8), pos("sàrl", 0.9)],
        "de": [pos("firma", 1.0), pos("unternehmen", 1.0), pos("arbeitgeber", 0.9),
               pos("gesellschaft", 0.9), pos("gmbh", 0.9), pos("ag", 0.8)],
        "it": [pos("società", 1.0), pos("azienda", 1.0), pos("datore di lavoro", 0.9),
               pos("ditta", 0.9), pos("sagl", 0.9), pos("srl", 0.9)],
    },
    PIIType.VAT_NUMBER: {
        "en": [pos("vat", 1.0), pos("uid", 1.0), pos("tax id", 0.9), pos("vat number", 1.0)],
        "fr": [pos("tva", 1.0), pos("ide", 1.0), pos("numéro tva", 1.0), pos("numéro ide", 1.0)],
        "de": [pos("mwst", 1.0), pos("uid", 1.0), pos("mwst-nr", 1.0), pos("ust-idnr", 1.0)],
        "it": [pos("iva", 1.0), pos("idi", 1.0), pos("partita iva", 1.0), pos("numero iva", 1.0)],
    },
    PIIType.AMOUNT: {
        "en": [pos("amount", 1.0), pos("total", 0.9), pos("price", 0.8), pos("salary", 1.0),
               pos("balance", 0.8)],
        "fr": [pos("montant", 1.0), pos("total", 0.9), pos("prix", 0.8), pos("salaire", 1.0),
               pos("solde", 0.8)],
        "de": [pos("betrag", 1.0), pos("summe", 0.9), pos("preis", 0.8), pos("lohn", 1.0),
               pos("gehalt", 1.0), pos("saldo", 0.8)],
        "it": [pos("importo", 1.0), pos("totale", 0.9), pos("prezzo", 0.8), pos("stipendio", 1.0),
               pos("saldo", 0.8)],
    },
    PIIType.PAYMENT_REF: {
        "en": [pos("reference", 1.0), pos("payment reference", 1.0), pos("qr reference", 1.0)],
        "fr": [pos("référence", 1.0), pos("référence de paiement", 1.0), pos("bvr", 1.0)],
        "de": [pos("referenz", 1.0), pos("referenznummer", 1.0), pos("esr", 1.0)],
        "it": [pos("riferimento", 1.0), pos("polizza", 0.8), pos("pvr", 1.0)],
    },
}


def get_context_words(
    entity_type: PIIType, language: Optional[str] = None,
) -> list[ContextWord]:
    """Context words for *entity_type*; every language when *language* is unknown."""
    by_lang = CONTEXT_WORDS.get(entity_type)
    if not by_lang:
        return []
    if language is not None and language in by_lang:
        return list(by_lang[language])
    seen: set[tuple[str, bool]] = set()
    merged: list[ContextWord] = []
    for words in by_lang.values():
        for cw in words:
            key = (cw.word, cw.positive)
            if key not in seen:
                seen.add(key)
                merged.append(cw)
    return merged
