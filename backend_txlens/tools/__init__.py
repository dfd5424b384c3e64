"""Command-line tools for TxLens."""
