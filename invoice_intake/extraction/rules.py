"""
Extraction Rule Tables.

Each invoice field is extracted by an ordered list of rules. A rule is a
regular expression, the part of the document it runs on, and the number
of confidence points it awards. The extractor evaluates a field's rules
in order and stops at the first one that yields an acceptable value
(except for the amount, where every labeled rule contributes a
candidate and the largest wins).

Scopes:
    - "text":  the whole document, whitespace-collapsed
    - "lines": the first ``extraction.line_scan_limit`` non-empty lines
"""

import re
from dataclasses import dataclass
from typing import Optional, Pattern

TEXT = "text"
LINES = "lines"


@dataclass(frozen=True)
class ExtractionRule:
    """
    One pattern for one field.

    Attributes:
        field: ExtractionResult attribute the rule fills
        name: Short identifier recorded in ``matched_rules``
        pattern: Compiled regular expression
        points: Confidence awarded when the rule produces the value
        scope: TEXT or LINES
        group: Capture group holding the value (0 for the whole match)
        order: For date rules, the order of the day/month/year groups
    """
    field: str
    name: str
    pattern: Pattern
    points: int
    scope: str = TEXT
    group: int = 1
    order: Optional[str] = None


# Amount token: grouped thousands ("1 234,56", "12,340.00") or plain digits
# with an optional 1-2 digit decimal part ("1234.56", "150,00").
AMOUNT = r"(\d{1,3}(?:[ .,]\d{3})+(?:[.,]\d{2})?(?!\d)|\d+(?:[.,]\d{1,2})?)"

# Optional VAT rate between the label and the amount: "TVA 20%", "TVA (5,5 %)".
VAT_RATE = r"(?:\s*\(?\s*\d{1,2}(?:[.,]\d{1,2})?\s*%\s*\)?)?"

LEGAL_SUFFIX = r"(?:SARL|SASU|SAS|SA|EURL|SCI|SNC|SELARL|SCOP)"

FRENCH_MONTH = (
    r"(janvier|janv|jan|f[ée]vrier|f[ée]vr|f[ée]v|mars|avril|avr|mai|juin|"
    r"juillet|juil|ao[uû]t|septembre|sept|sep|octobre|oct|novembre|nov|"
    r"d[ée]cembre|d[ée]c)"
)


def _rule(field, name, pattern, points, scope=TEXT, group=1, flags=re.IGNORECASE, order=None):
    return ExtractionRule(
        field=field,
        name=name,
        pattern=re.compile(pattern, flags),
        points=points,
        scope=scope,
        group=group,
        order=order,
    )


IBAN_RULES = [
    _rule('iban', 'iban_grouped',
          r"FR\d{2}\s?\d{4}\s?\d{4}\s?\d{4}\s?\d{4}\s?\d{2}", 10, group=0),
    _rule('iban', 'iban_compact', r"FR[A-Z0-9]{23}", 10, group=0),
]

EMAIL_RULES = [
    _rule('email', 'email', r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}", 10, group=0),
]

PHONE_RULES = [
    _rule('phone', 'phone_labeled',
          r"\b(?:t[ée]l(?:[ée]phone)?|phone)[\s:.]*\s*"
          r"(\d{2}[\s.-]?\d{2}[\s.-]?\d{2}[\s.-]?\d{2}[\s.-]?\d{2})", 10),
    _rule('phone', 'phone_bare',
          r"0\d[\s.-]?\d{2}[\s.-]?\d{2}[\s.-]?\d{2}[\s.-]?\d{2}", 10, group=0),
]

SIRET_RULES = [
    _rule('siret', 'siret', r"\b\d{14}\b", 10, group=0),
]

ADDRESS_RULES = [
    _rule('address', 'address',
          r"\d+[\s,]+[A-Z][a-zéèêëàâäùûüôöîï]+[\s,]+[A-Z]{2,5}", 5, group=0, flags=0),
]

INVOICE_NUMBER_RULES = [
    _rule('invoice_number', 'numero_facture',
          r"N°\s*(?:de\s*)?(?:facture|invoice)?\s*[:.\-]?\s*([A-Z0-9]{4,})", 20, scope=LINES),
    _rule('invoice_number', 'facture_numero',
          r"Facture\s*(?:n°|no|numéro|#)?\s*[:.\-]?\s*([A-Z0-9]{4,})", 20, scope=LINES),
    _rule('invoice_number', 'numero',
          r"N°\s*([A-Z0-9\-]{4,})", 20, scope=LINES),
    _rule('invoice_number', 'invoice',
          r"Invoice\s*(?:n°|no|#)?\s*[:.\-]?\s*([A-Z0-9\-]{4,})", 20, scope=LINES),
    _rule('invoice_number', 'reference',
          r"(?:R[ée]f[ée]rence|Reference|R[ée]f)\s*[:.\-]?\s*([A-Z0-9\-]{4,})", 20, scope=LINES),
    _rule('invoice_number', 'fa_code', r"\b(FA\d{6,})\b", 20, scope=LINES),
    _rule('invoice_number', 'inv_code', r"\b(INV\d{6,})\b", 20, scope=LINES),
    _rule('invoice_number', 'year_code', r"\b(20\d{2}[A-Z0-9]{4,})\b", 20, scope=LINES),
]

VENDOR_RULES = [
    # "SOFIANE TRANSPORT SARL"
    _rule('vendor', 'vendor_caps_suffix',
          rf"\b([A-Z0-9][A-Z0-9&'.\-]*(?:\s+[A-Z0-9&'.\-]+)*?\s+{LEGAL_SUFFIX})\b", 30,
          scope=LINES, flags=0),
    # "Garage du Centre SARL"
    _rule('vendor', 'vendor_name_suffix',
          rf"\b([A-Z][\w&'.\-]*(?:\s+[\w&'.\-]+){{0,5}}?\s+{LEGAL_SUFFIX})\b", 30,
          scope=LINES, flags=0),
]

VENDOR_FALLBACK_POINTS = 20
VENDOR_UNKNOWN_POINTS = 5
VENDOR_UNKNOWN = "Inconnu"

# Lines that carry a label, a total or a bare number are never a vendor name.
LABEL_LINE = re.compile(
    r"^(?:total|montant|net\b|solde|tva|ttc|ht\b|date|facture|invoice|avoir|devis|"
    r"bon\s+de|n°|no\b|num[ée]ro|r[ée]f|page|client|adress|factur|destinataire|"
    r"iban|bic|siret|siren|t[ée]l|phone|e-?mail|www\.|http)",
    re.IGNORECASE,
)
NUMERIC_LINE = re.compile(r"^[\d\s.,€%/:+()\-]+$")
CAPITALIZED_LINE = re.compile(r"^[A-ZÀ-ÖØ-Þ]")

CLIENT_RULES = [
    _rule('client_name', 'client_label',
          r"^(?:adress[ée]e?\s+[àa]|factur[ée]e?\s+[àa]|client|destinataire)\b\s*[:\-]?\s*(.*)$",
          15, scope=LINES),
]

AMOUNT_RULES = [
    _rule('amount', 'net_a_payer',
          rf"NET\s*[ÀA]\s*PAYER\s*(?:TTC)?\s*[:\-]?\s*\|?\s*{AMOUNT}", 30),
    _rule('amount', 'solde_a_payer',
          rf"SOLDE\s*[ÀA]\s*PAYER\s*[:\-]?\s*\|?\s*{AMOUNT}", 30),
    _rule('amount', 'montant_ttc',
          rf"MONTANT\s*(?:NET\s*)?TTC\s*[:\-]?\s*\|?\s*{AMOUNT}", 30),
    _rule('amount', 'total_ttc',
          rf"TOTAL\s*TTC\s*[:\-]?\s*\|?\s*{AMOUNT}", 30),
]

AMOUNT_FALLBACK_RULE = _rule('amount', 'euro_amount', rf"{AMOUNT}\s*€", 20)

VAT_RULES = [
    _rule('vat_amount', 'montant_tva',
          rf"Montant\s*(?:de\s*(?:la\s*)?)?TVA{VAT_RATE}\s*[:\-]?\s*\|?\s*{AMOUNT}", 15),
    _rule('vat_amount', 'total_tva',
          rf"Total\s*TVA{VAT_RATE}\s*[:\-]?\s*\|?\s*{AMOUNT}", 15),
    _rule('vat_amount', 'tva',
          rf"TVA{VAT_RATE}\s*[:\-]?\s*\|?\s*{AMOUNT}", 15),
]

DATE_RULES = [
    _rule('date', 'date_labeled',
          r"Date\s*(?:de\s+|d['’]\s*)?(?:la\s+)?(?:facture|facturation|[ée]mission)?\s*[:\-]?\s*"
          r"(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\b", 20, order='dmy'),
    _rule('date', 'date_french_month',
          rf"\b(\d{{1,2}})(?:er)?\s+{FRENCH_MONTH}\.?\s+(\d{{4}})\b", 20, order='dmy'),
    _rule('date', 'date_dmy', r"\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})\b", 20, order='dmy'),
    _rule('date', 'date_iso', r"\b(\d{4})-(\d{2})-(\d{2})\b", 20, order='ymd'),
]
