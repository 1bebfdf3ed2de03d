"""
Availability rule engine and slot generator.

Turns recurring weekly availability rules into concrete, non-overlapping,
bookable time slots.
"""

__version__ = "0.1.0"
