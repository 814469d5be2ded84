"""
Post-Processing Module for the Invoice Intake System.

This module provides functionality for:
    - IBAN and SIRET checksum validation
    - Company classification
    - Confidence gating and review routing
"""

from .classifier import CompanyClassifier, CompanyRule
from .confidence import ConfidenceGate, GateDecision
from .processor import PostProcessor, ProcessingOutcome
from .validators import IbanValidator, SiretValidator, is_valid_iban, is_valid_siret

__all__ = [
    'CompanyClassifier',
    'CompanyRule',
    'ConfidenceGate',
    'GateDecision',
    'PostProcessor',
    'ProcessingOutcome',
    'IbanValidator',
    'SiretValidator',
    'is_valid_iban',
    'is_valid_siret',
]
