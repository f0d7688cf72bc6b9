"""
PHYSIOTRACK Shared Module

Common utilities used across all services.
"""

from .utils import setup_logger, format_elapsed

__all__ = [
    'setup_logger',
    'format_elapsed',
]
