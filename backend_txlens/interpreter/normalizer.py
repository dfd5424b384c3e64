"""
Instruction normalizer: raw instruction (parsed or opaque) to InstructionDetail.

Parsed instructions keep their decoded parameter mapping unchanged. Opaque
instructions get a best-effort base58 -> UTF-8 decode of their payload (memo
style programs write plain text); anything else passes through raw next to
the stringified account list. Inner instructions are normalized the same way,
to any depth. Never raises: unrecognized input becomes an "Unknown
Instruction" detail.
"""

from __future__ import annotations

from typing import Any, Iterable

import base58

from backend_txlens.core.exceptions import DecodeError
from backend_txlens.interpreter.models import (
    UNKNOWN_INSTRUCTION,
    InstructionDetail,
    OpaqueInstruction,
    ParsedInstruction,
    RawInstruction,
    instruction_from_rpc,
)
from backend_txlens.interpreter.programs import ProgramRegistry, default_registry
from backend_txlens.txlens_logging import get_logger

logger = get_logger(__name__)

_TEXT_WHITESPACE = "\n\r\t"


def decode_instruction_data(data: str) -> str:
    """
    Decode a base58 instruction payload as human-readable UTF-8 text.

    Raises DecodeError when the payload is not base58, not UTF-8, or contains
    control characters (binary instruction data).
    """
    if not data:
        raise DecodeError("empty instruction data")
    try:
        raw = base58.b58decode(data)
    except ValueError as e:
        raise DecodeError(f"not base58: {e}") from e
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"not utf-8: {e}") from e
    if not text or not all(ch.isprintable() or ch in _TEXT_WHITESPACE for ch in text):
        raise DecodeError("payload is binary, not text")
    return text


def _stringify_account(account: Any) -> str:
    if isinstance(account, dict):
        return str(account.get("pubkey") or "")
    return str(account)


class InstructionNormalizer:
    """Builds InstructionDetail trees using a ProgramRegistry for names and labels."""

    def __init__(self, registry: ProgramRegistry | None = None) -> None:
        self._registry = registry or default_registry()

    @property
    def registry(self) -> ProgramRegistry:
        return self._registry

    def normalize(
        self,
        instruction: RawInstruction | dict[str, Any],
        inner: Iterable[RawInstruction | dict[str, Any]] | None = None,
    ) -> InstructionDetail:
        """
        Normalize one instruction and its children.

        inner: children associated to this instruction by parent index; when
        None, the instruction's own nested list is used.
        """
        try:
            ix = instruction_from_rpc(instruction)
            if ix is None:
                return self._unknown(instruction)
            if isinstance(ix, ParsedInstruction):
                detail = self._from_parsed(ix)
            else:
                detail = self._from_opaque(ix)
            children = ix.inner if inner is None else inner
            detail.children = [self.normalize(child) for child in children]
            return detail
        except Exception as e:
            logger.warning("instruction_normalize_failed", error=str(e))
            return self._unknown(instruction)

    def _from_parsed(self, ix: ParsedInstruction) -> InstructionDetail:
        descriptor = self._registry.lookup(ix.program_id)
        return InstructionDetail(
            program_id=ix.program_id,
            program_name=descriptor.name,
            instruction_name=self._registry.label(descriptor, ix.type),
            params=dict(ix.info),
        )

    def _from_opaque(self, ix: OpaqueInstruction) -> InstructionDetail:
        descriptor = self._registry.lookup(ix.program_id)
        try:
            data = decode_instruction_data(ix.data)
        except DecodeError:
            data = ix.data
        return InstructionDetail(
            program_id=ix.program_id,
            program_name=descriptor.name,
            instruction_name=self._registry.label(descriptor, None),
            params={
                "data": data,
                "accounts": [_stringify_account(a) for a in ix.accounts],
            },
        )

    def _unknown(self, instruction: Any) -> InstructionDetail:
        program_id = ""
        if isinstance(instruction, dict):
            program_id = str(instruction.get("programId") or "")
        elif isinstance(instruction, (ParsedInstruction, OpaqueInstruction)):
            program_id = instruction.program_id
        descriptor = self._registry.lookup(program_id)
        return InstructionDetail(
            program_id=program_id,
            program_name=descriptor.name,
            instruction_name=UNKNOWN_INSTRUCTION,
            params={"raw": repr(instruction)},
        )
