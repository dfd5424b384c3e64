"""
Token metadata: SPL mint / Metaplex account layouts and the TTL-cached resolver.
"""

from backend_txlens.metadata.resolver import TokenMetadataResolver

__all__ = ["TokenMetadataResolver"]
