"""
Chain-of-custody reports and privilege logs.
"""

from custody.chain.builder import ChainOfCustodyBuilder, ChainOfCustodyReport, CustodySummary
from custody.chain.privilege import PrivilegeLog, PrivilegeLogEntry, PrivilegeLogGenerator

__all__ = [
    "ChainOfCustodyBuilder",
    "ChainOfCustodyReport",
    "CustodySummary",
    "PrivilegeLog",
    "PrivilegeLogEntry",
    "PrivilegeLogGenerator",
]
