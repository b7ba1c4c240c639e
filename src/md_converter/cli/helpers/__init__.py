"""
CLI helper functions and utilities.
"""

from .errors import handle_errors

__all__ = [
    'handle_errors'
]
