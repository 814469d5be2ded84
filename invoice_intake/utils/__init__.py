"""
Utility Module for the Invoice Intake System.

This module provides common utilities used across all other modules:
    - Logging configuration
    - Exception hierarchy
    - Common helpers
"""

from .logger import setup_logger, setup_logger_from_config, get_logger
from .helpers import ensure_directory, get_file_extension, utcnow

__all__ = [
    'setup_logger',
    'setup_logger_from_config',
    'get_logger',
    'ensure_directory',
    'get_file_extension',
    'utcnow'
]
