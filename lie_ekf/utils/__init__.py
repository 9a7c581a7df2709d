"""
Utility functions for linearization-based filters.
"""

from .jacobian_checks import check_jacobian_health, MAX_JACOBIAN_ENTRY

__all__ = [
    'check_jacobian_health',
    'MAX_JACOBIAN_ENTRY',
]
