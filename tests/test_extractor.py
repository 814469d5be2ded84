"""Tests for the rule-based invoice field extractor."""

from invoice_intake.extraction import rules
from invoice_intake.extraction.extractor import InvoiceFieldExtractor

from conftest import SOFIANE_INVOICE_TEXT

extractor = InvoiceFieldExtractor()


def test_end_to_end_sofiane_invoice():
    result = extractor.extract(SOFIANE_INVOICE_TEXT)

    assert result.vendor == "SOFIANE TRANSPORT SARL"
    assert result.invoice_number == "FA2024001"
    assert result.amount == 150.0
    assert result.date == "2024-03-14"
    assert result.confidence == 100
    assert result.matched_rules["vendor"] == "vendor_caps_suffix"
    assert result.matched_rules["date"] == "date_french_month"


def test_full_invoice_fields_and_confidence_cap():
    text = (
        "SOFIANE TRANSPORT SARL\n"
        "Facture N° FA2024001\n"
        "Facturé à : Garage Martin\n"
        "Tel: 01 23 45 67 89\n"
        "contact@sofiane-transport.fr\n"
        "SIRET : 73282932000074\n"
        "Total TTC 120,00 €\n"
        "TVA 20% 20,00 €\n"
        "Date: 14/03/2024"
    )
    result = extractor.extract(text)

    assert result.client_name == "Garage Martin"
    assert result.phone == "01 23 45 67 89"
    assert result.email == "contact@sofiane-transport.fr"
    assert result.siret == "73282932000074"
    assert result.amount == 120.0
    assert result.vat_amount == 20.0
    assert result.date == "2024-03-14"
    assert result.confidence == 100


def test_client_equal_to_vendor_is_rejected():
    text = "SOFIANE TRANSPORT SARL\nClient : SOFIANE TRANSPORT SARL\nTOTAL TTC 10,00 €"
    result = extractor.extract(text)

    assert result.vendor == "SOFIANE TRANSPORT SARL"
    assert result.client_name is None


def test_largest_labeled_amount_wins():
    result = extractor.extract("Total TTC 120,00 €\nNet à payer 150,00 €")

    assert result.amount == 150.0
    assert result.matched_rules["amount"] == "net_a_payer"


def test_euro_fallback_and_first_line_vendor():
    result = extractor.extract("Boulangerie Martin\nArticles divers 45,50 €")

    assert result.vendor == "Boulangerie Martin"
    assert result.amount == 45.5
    assert result.matched_rules["amount"] == "euro_amount"
    assert result.confidence == rules.VENDOR_FALLBACK_POINTS + 20
    assert "date" in result.missing_fields


def test_amount_over_upper_bound_is_discarded():
    result = extractor.extract("Total TTC 2 000 000,00 €")
    assert result.amount is None


def test_vat_not_below_amount_is_discarded():
    result = extractor.extract("Total TTC 20,00 €\nTVA 20,00 €")

    assert result.amount == 20.0
    assert result.vat_amount is None


def test_unknown_vendor_gets_placeholder():
    result = extractor.extract("Total 12\n45")

    assert result.vendor == rules.VENDOR_UNKNOWN
    assert result.confidence == rules.VENDOR_UNKNOWN_POINTS


def test_empty_text():
    result = extractor.extract("")

    assert result.vendor == rules.VENDOR_UNKNOWN
    assert result.amount is None


def test_extract_missing_fields_only_fills_empty_values():
    existing = {"vendor": "Inconnu", "amount": 99.0, "date": None, "invoice_number": "X-1"}
    found = extractor.extract_missing_fields(SOFIANE_INVOICE_TEXT, existing)

    assert found == {"vendor": "SOFIANE TRANSPORT SARL", "date": "2024-03-14"}


def test_extract_missing_fields_without_text():
    assert extractor.extract_missing_fields(None, {"vendor": None}) == {}


def test_comma_decimal_with_one_digit():
    result = extractor.extract("TOTAL TTC 45,5 €\nTVA 7,6 €")

    assert result.amount == 45.5
    assert result.vat_amount == 7.6


def test_labeled_phone_preferred_over_bare_number():
    result = extractor.extract("Fax 01 11 22 33 44\nTél. 06 12 34 56 78")

    assert result.phone == "06 12 34 56 78"
    assert result.matched_rules["phone"] == "phone_labeled"


def test_bare_phone_fallback():
    result = extractor.extract("Contact 06.12.34.56.78")

    assert result.phone == "06.12.34.56.78"
    assert result.matched_rules["phone"] == "phone_bare"


def test_labeled_date_preferred_over_earlier_bare_date():
    result = extractor.extract("Livraison 01/02/2024\nDate de facture : 05/04/2024")

    assert result.date == "2024-04-05"
    assert result.matched_rules["date"] == "date_labeled"


def test_bare_iso_date():
    result = extractor.extract("Émis le 2024-03-14")

    assert result.date == "2024-03-14"
    assert result.matched_rules["date"] == "date_iso"


def test_reference_rule_before_inv_code_on_same_line():
    result = extractor.extract("Référence : REF2024A INV123456")

    assert result.invoice_number == "REF2024A"
    assert result.matched_rules["invoice_number"] == "reference"


def test_inv_code_before_year_code_on_same_line():
    result = extractor.extract("Commande 2024ABCD INV123456")

    assert result.invoice_number == "INV123456"
    assert result.matched_rules["invoice_number"] == "inv_code"


def test_year_code_rule():
    result = extractor.extract("Document 2024A0017")

    assert result.invoice_number == "2024A0017"
    assert result.matched_rules["invoice_number"] == "year_code"
