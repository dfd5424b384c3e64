"""
Instruction processor: classifies and extracts every instruction of a transaction.

For each top-level instruction: record the program interaction, normalize the
instruction with its inner instructions, and (parsed instructions only) run
the transfer extractor. Parsed instructions go to actions, opaque ones to
other_instructions. Per-instruction work may run concurrently; results are
joined in instruction index order before aggregation.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

from backend_txlens.core.exceptions import ProviderUnavailableError
from backend_txlens.interpreter.models import (
    ExtractionResult,
    InstructionDetail,
    ParsedInstruction,
    RawInstruction,
    TransactionInput,
    Transfer,
    instruction_from_rpc,
)
from backend_txlens.interpreter.normalizer import InstructionNormalizer
from backend_txlens.interpreter.programs import ProgramRegistry, default_registry
from backend_txlens.interpreter.transfers import TRANSFER_LABELS, TransferExtractor
from backend_txlens.metadata.resolver import DEFAULT_TTL_SEC, TokenMetadataResolver
from backend_txlens.solana_listener.rpc import AccountLookupProvider
from backend_txlens.txlens_logging import get_logger
from backend_txlens.txlens_logging.logger import bind_signature

logger = get_logger(__name__)


@dataclass
class _InstructionOutcome:
    program_id: str
    program_name: str
    detail: InstructionDetail
    is_parsed: bool
    transfers: list[Transfer] = field(default_factory=list)


class InstructionProcessor:
    """
    Orchestrates registry, normalizer, extractor and metadata resolver.

    The resolver (and its cache) is injected so several processors, or several
    requests, can share one cache.
    """

    def __init__(
        self,
        resolver: TokenMetadataResolver,
        *,
        registry: ProgramRegistry | None = None,
        concurrent: bool = True,
    ) -> None:
        if resolver is None:
            raise ProviderUnavailableError("a metadata resolver backed by an account lookup provider is required")
        self._registry = registry or default_registry()
        self._resolver = resolver
        self._normalizer = InstructionNormalizer(self._registry)
        self._extractor = TransferExtractor(resolver, self._registry)
        self._concurrent = concurrent

    @classmethod
    def from_provider(
        cls,
        provider: AccountLookupProvider,
        *,
        ttl_sec: float = DEFAULT_TTL_SEC,
        registry: ProgramRegistry | None = None,
        concurrent: bool = True,
    ) -> "InstructionProcessor":
        """Build a processor with a fresh resolver around provider."""
        return cls(
            TokenMetadataResolver(provider, ttl_sec=ttl_sec),
            registry=registry,
            concurrent=concurrent,
        )

    @property
    def resolver(self) -> TokenMetadataResolver:
        return self._resolver

    @property
    def registry(self) -> ProgramRegistry:
        return self._registry

    async def classify_and_extract(self, tx: TransactionInput) -> ExtractionResult:
        """Interpret tx; an empty instruction list yields an empty result."""
        log = bind_signature(tx.signature) if tx.signature else logger
        started = time.perf_counter()

        jobs = [
            self._process(
                instruction,
                tx.inner_instructions.get(idx),
                tx.token_account_mints,
            )
            for idx, instruction in enumerate(tx.instructions)
        ]
        if self._concurrent:
            # gather returns results in submission order, i.e. instruction index order
            outcomes = list(await asyncio.gather(*jobs))
        else:
            outcomes = [await job for job in jobs]

        result = ExtractionResult()
        for outcome in outcomes:
            if outcome.program_id:
                result.add_program(outcome.program_id)
            if outcome.is_parsed:
                for transfer in outcome.transfers:
                    result.transfers.append(transfer)
                    result.types.append(TRANSFER_LABELS[transfer.token_type])
                result.types.append(outcome.detail.instruction_name)
                result.actions.append(outcome.detail)
            else:
                result.types.append(outcome.program_name)
                result.other_instructions.append(outcome.detail)

        log.info(
            "instruction_processor_done",
            instruction_count=len(tx.instructions),
            program_count=len(result.program_interactions),
            transfer_count=len(result.transfers),
            concurrent=self._concurrent,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return result

    async def _process(
        self,
        instruction: RawInstruction | dict[str, Any],
        inner: list[RawInstruction] | None,
        mint_hints: Mapping[str, str],
    ) -> _InstructionOutcome:
        ix = instruction_from_rpc(instruction)
        detail = self._normalizer.normalize(instruction, inner)
        program_id = ix.program_id if ix is not None else detail.program_id
        outcome = _InstructionOutcome(
            program_id=program_id,
            program_name=detail.program_name,
            detail=detail,
            is_parsed=isinstance(ix, ParsedInstruction),
        )
        if isinstance(ix, ParsedInstruction):
            try:
                outcome.transfers = await self._extractor.extract(ix, mint_hints)
            except Exception as e:
                logger.exception("transfer_extract_failed", program_id=program_id, error=str(e))
        return outcome


async def classify_and_extract_instructions(
    tx: TransactionInput,
    resolver: TokenMetadataResolver,
    *,
    registry: ProgramRegistry | None = None,
    concurrent: bool = True,
) -> ExtractionResult:
    """One-shot helper around InstructionProcessor."""
    processor = InstructionProcessor(resolver, registry=registry, concurrent=concurrent)
    return await processor.classify_and_extract(tx)
