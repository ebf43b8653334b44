"""
Store-independent helpers: field mapping, formatting, filtering, export and import.
"""
from .field_mapping import (
    normalize,
    expand,
    display_code,
)
from .formatters import (
    format_date,
    format_currency,
    escape_csv,
)
from .exporters import (
    NothingToExport,
    export_startups,
)

__all__ = [
    'normalize',
    'expand',
    'display_code',
    'format_date',
    'format_currency',
    'escape_csv',
    'NothingToExport',
    'export_startups',
]
