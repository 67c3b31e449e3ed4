"""
Energy Guard.

Household energy tracking: usage aggregation and budget/usage alerting.
"""

__version__ = "0.1.0"
