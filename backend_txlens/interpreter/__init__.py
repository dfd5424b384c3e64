"""
Transaction instruction interpreter.

Registry of known programs, instruction normalizer, transfer extractor and the
processor that drives them over one transaction. Import the processor from
backend_txlens.interpreter.processor.
"""

from backend_txlens.interpreter.models import (
    AssetMetadata,
    ExtractionResult,
    InstructionDetail,
    OpaqueInstruction,
    ParsedInstruction,
    ProgramDescriptor,
    TransactionInput,
    Transfer,
)
from backend_txlens.interpreter.programs import ProgramRegistry, default_registry

__all__ = [
    "AssetMetadata",
    "ExtractionResult",
    "InstructionDetail",
    "OpaqueInstruction",
    "ParsedInstruction",
    "ProgramDescriptor",
    "ProgramRegistry",
    "TransactionInput",
    "Transfer",
    "default_registry",
]
