"""
Data layer for tariff_model.

This package provides the bracket statistics the simulator is calibrated
against, a CSV loader for replacement tables, and their validators.

Example usage:
    >>> from tariff_model.data import DESTATIS_2021_BRACKETS, DataValidator
    >>> DataValidator.validate_brackets(DESTATIS_2021_BRACKETS).passed
    True
"""

from tariff_model.data.destatis import (
    BracketStat,
    DESTATIS_2021_BRACKETS,
    brackets_to_dataframe,
    load_bracket_table,
)
from tariff_model.data.validation import DataValidator, ValidationResult, ensure_valid_brackets

__all__ = [
    'BracketStat',
    'DESTATIS_2021_BRACKETS',
    'brackets_to_dataframe',
    'load_bracket_table',
    'DataValidator',
    'ValidationResult',
    'ensure_valid_brackets',
]
