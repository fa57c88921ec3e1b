"""
Rotation Engine: intern rotation scheduling.
Round-robin unit assignment, lazy auto-advance, extensions and status reconciliation
over a SQLAlchemy-backed rotation ledger.

The ledger IS the source of truth: status is always derived from it.
"""

__version__ = "1.0.0"
