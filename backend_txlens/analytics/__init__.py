"""
TxLens transaction analytics.

Wraps the instruction interpreter's output in a report with network and
transaction facts, balance-derived native transfers, complexity and risk.
"""

from backend_txlens.analytics.transaction_report import (
    TransactionReport,
    analyze_signature,
    analyze_transaction,
    build_report,
)

__all__ = [
    "TransactionReport",
    "analyze_signature",
    "analyze_transaction",
    "build_report",
]
