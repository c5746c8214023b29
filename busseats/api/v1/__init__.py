"""
API v1 module initialization
"""

from . import endpoints

__all__ = ["endpoints"]
