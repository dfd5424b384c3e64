"""
Solana RPC access and raw transaction adaptation.

rpc: account lookup provider (getAccountInfo) and transaction fetch over JSON-RPC.
parser: jsonParsed getTransaction payload -> TransactionInput for the interpreter.
"""

from backend_txlens.solana_listener.parser import parse_transaction
from backend_txlens.solana_listener.rpc import AccountLookupProvider, SolanaRpcClient

__all__ = [
    "AccountLookupProvider",
    "SolanaRpcClient",
    "parse_transaction",
]
