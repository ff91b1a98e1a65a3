"""
SQL record-count scaler for external-metric autoscalers.

This package provides polling metric adapters that run an operator-supplied
query against a database on every poll and report the resulting record count
as an external metric, plus a Lambda runner that drives one poll cycle.
"""

__version__ = "0.1.0"
