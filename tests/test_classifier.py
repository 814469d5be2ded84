"""Tests for company classification."""

import pytest

from invoice_intake.enums import InvoiceCompany
from invoice_intake.postprocessor.classifier import CompanyClassifier, normalize_for_matching
from invoice_intake.utils.exceptions import ConfigurationError

classifier = CompanyClassifier()


def test_sofiane_is_not_mistaken_for_sofia():
    assert classifier.classify("Sofiane Transport SARL", "") == InvoiceCompany.SOFIANE_TRANSPORT


def test_sofia_vendor():
    assert classifier.classify("Sofia Transport", "") == InvoiceCompany.SOFIA_TRANSPORT


def test_unknown_vendor():
    assert classifier.classify("Acme Corp", "") == InvoiceCompany.UNKNOWN
    assert classifier.classify(None, None) == InvoiceCompany.UNKNOWN


def test_garage_keywords_with_accents():
    assert classifier.classify("Atelier Mécanique Dupont", "") == InvoiceCompany.GARAGE_EXPERTISE


def test_text_tier_used_when_vendor_does_not_match():
    company, tier = classifier.classify_with_reason("Inconnu", "Livraison pour SOFIA TRANSPORT")
    assert company == InvoiceCompany.SOFIA_TRANSPORT
    assert tier == "text"


def test_text_tier_rejects_sofia_when_sofiane_present():
    text = "Sofia et Sofiane Transport"
    assert classifier.classify("Acme", text) == InvoiceCompany.SOFIANE_TRANSPORT


def test_vendor_tier_wins_over_text():
    company, tier = classifier.classify_with_reason("Garage du Centre", "transport sofiane")
    assert company == InvoiceCompany.GARAGE_EXPERTISE
    assert tier == "vendor"


def test_custom_rule_table():
    custom = CompanyClassifier(rules=[
        {"company": "GARAGE_EXPERTISE", "vendor_keywords": ["carrosserie"]},
    ])
    assert custom.classify("Carrosserie Leroy", "") == InvoiceCompany.GARAGE_EXPERTISE
    assert custom.classify("Garage Leroy", "") == InvoiceCompany.UNKNOWN


def test_bad_rule_table_raises():
    with pytest.raises(ConfigurationError):
        CompanyClassifier(rules=[{"company": "NOT_A_COMPANY"}])
    with pytest.raises(ConfigurationError):
        CompanyClassifier(rules=[{"company": "SOFIA_TRANSPORT", "keywords": ["x"]}])


def test_normalize_for_matching():
    assert normalize_for_matching("Mécanique & Co.") == "mecaniqueco"
    assert normalize_for_matching(None) == ""
