"""
Utility functions for the curve tracer toolkit.
"""

from .engineering import format_engineering, format_quantity, SI_PREFIXES

__all__ = ['format_engineering', 'format_quantity', 'SI_PREFIXES']
