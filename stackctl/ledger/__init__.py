"""
Ledger module.
Local bounded record of jobs this controller has reserved.
"""

from stackctl.ledger.jobs import JobLedger
from stackctl.ledger.store import Ledger, ReadWriteLock

__all__ = [
    "Ledger",
    "JobLedger",
    "ReadWriteLock",
]
