"""
Backend TxLens: Solana transaction interpretation engine.

Classifies every instruction of a decoded transaction against a registry of
known programs, extracts native / SPL / NFT transfer records, and resolves
token metadata with a TTL cache. Output is plain, JSON-serializable data for
downstream report formatting and summarization.
"""

__version__ = "0.1.0"
