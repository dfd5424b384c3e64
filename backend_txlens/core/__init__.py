"""
Core utilities: shared exceptions and cross-cutting concerns.

Exception types used by the interpreter, metadata resolver and RPC provider.
"""
