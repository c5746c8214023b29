"""
Seat inventory and reservation lifecycle for bus ticket booking
"""

__version__ = "1.0.0"
