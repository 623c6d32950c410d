"""
Registration lifecycle tracking: expiry alerts, approval decisions, and reports.
"""

__version__ = "0.3.0"
