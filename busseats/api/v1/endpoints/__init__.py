"""
API endpoints module
"""

from . import layouts, availability, reservations, health, monitoring

__all__ = [
    "layouts",
    "availability",
    "reservations",
    "health",
    "monitoring",
]
