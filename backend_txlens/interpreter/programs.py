"""
Known-program registry: program id -> display name and instruction labels.

Static catalog, built once per process. Lookups never fail: unknown ids get a
synthesized "Unknown Program (<id>)" descriptor.
"""

from __future__ import annotations

import functools
from typing import Iterable

from backend_txlens.interpreter.models import UNKNOWN_INSTRUCTION, ProgramDescriptor

DEFAULT_LABEL_KEY = "default"

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"
ASSOCIATED_TOKEN_PROGRAM_ID = "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
METADATA_PROGRAM_ID = "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
BPF_UPGRADEABLE_LOADER_ID = "BPFLoaderUpgradeab1e11111111111111111111111"
MEMO_PROGRAM_ID = "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr"
MEMO_V1_PROGRAM_ID = "Memo1UhkJRfHyvLMcVucJwxXeuD728EqVDDwQDxFMNo"

# jsonParsed program names that drive transfer extraction
CATEGORY_SYSTEM = "system"
CATEGORY_SPL_TOKEN = "spl-token"
CATEGORY_SPL_TOKEN_2022 = "spl-token-2022"

_TOKEN_LABELS = {
    "transfer": "Transfer Tokens",
    "transferChecked": "Transfer Tokens (Checked)",
    "mintTo": "Mint Tokens",
    "mintToChecked": "Mint Tokens (Checked)",
    "burn": "Burn Tokens",
    "burnChecked": "Burn Tokens (Checked)",
    "approve": "Approve Token Delegation",
    "approveChecked": "Approve Token Delegation (Checked)",
    "revoke": "Revoke Token Delegation",
    "setAuthority": "Set Authority",
    "closeAccount": "Close Token Account",
    "freezeAccount": "Freeze Account",
    "thawAccount": "Thaw Account",
    "syncNative": "Sync Native",
    "initializeMint": "Initialize Mint",
    "initializeMint2": "Initialize Mint",
    "initializeAccount": "Initialize Token Account",
    "initializeAccount2": "Initialize Token Account",
    "initializeAccount3": "Initialize Token Account",
    "getAccountDataSize": "Get Account Data Size",
    "initializeImmutableOwner": "Initialize Immutable Owner",
}

KNOWN_PROGRAMS: tuple[ProgramDescriptor, ...] = (
    # Core programs
    ProgramDescriptor(
        id=SYSTEM_PROGRAM_ID,
        name="System Program",
        category=CATEGORY_SYSTEM,
        instruction_labels={
            "transfer": "Transfer SOL",
            "transferWithSeed": "Transfer SOL with Seed",
            "allocate": "Allocate Space",
            "allocateWithSeed": "Allocate Space with Seed",
            "assign": "Assign Account",
            "assignWithSeed": "Assign Account with Seed",
            "createAccount": "Create Account",
            "createAccountWithSeed": "Create Account with Seed",
            "advanceNonce": "Advance Nonce Account",
            "withdrawFromNonce": "Withdraw from Nonce Account",
            "initializeNonce": "Initialize Nonce Account",
            "authorizeNonce": "Authorize Nonce Account",
            "upgradeNonce": "Upgrade Nonce Account",
        },
    ),
    ProgramDescriptor(
        id=TOKEN_PROGRAM_ID,
        name="Token Program",
        category=CATEGORY_SPL_TOKEN,
        instruction_labels=_TOKEN_LABELS,
    ),
    ProgramDescriptor(
        id=TOKEN_2022_PROGRAM_ID,
        name="Token-2022 Program",
        category=CATEGORY_SPL_TOKEN_2022,
        instruction_labels=_TOKEN_LABELS,
    ),
    ProgramDescriptor(
        id=ASSOCIATED_TOKEN_PROGRAM_ID,
        name="Associated Token Program",
        instruction_labels={
            "create": "Create Associated Token Account",
            "createIdempotent": "Create Associated Token Account (Idempotent)",
            "recoverNested": "Recover Nested Token Account",
        },
    ),
    ProgramDescriptor(
        id=METADATA_PROGRAM_ID,
        name="Token Metadata Program",
        instruction_labels={
            "createMetadataAccount": "Create Metadata Account",
            "updateMetadataAccount": "Update Metadata Account",
            "createMasterEdition": "Create Master Edition",
            "verifyCollection": "Verify Collection",
            "setAndVerifyCollection": "Set and Verify Collection",
            "unverifyCollection": "Unverify Collection",
            "burnNft": "Burn NFT",
            "verifyCreator": "Verify Creator",
            "unverifyCreator": "Unverify Creator",
            DEFAULT_LABEL_KEY: "Token Metadata Operation",
        },
    ),
    ProgramDescriptor(
        id=BPF_UPGRADEABLE_LOADER_ID,
        name="BPF Upgradeable Loader",
        instruction_labels={
            "initializeBuffer": "Initialize Buffer",
            "write": "Write Program Data",
            "deployWithMaxDataLen": "Deploy Program",
            "upgrade": "Upgrade Program",
            "setAuthority": "Set Upgrade Authority",
            "close": "Close Program Account",
            "extendProgram": "Extend Program",
        },
    ),
    # DEX programs
    ProgramDescriptor(
        id="JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4",
        name="Jupiter Aggregator v6",
        instruction_labels={DEFAULT_LABEL_KEY: "Swap Tokens"},
    ),
    ProgramDescriptor(
        id="JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB",
        name="Jupiter Aggregator v4",
        instruction_labels={DEFAULT_LABEL_KEY: "Swap Tokens"},
    ),
    ProgramDescriptor(
        id="675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8",
        name="Raydium Liquidity Pool V4",
        instruction_labels={DEFAULT_LABEL_KEY: "Swap Tokens"},
    ),
    ProgramDescriptor(
        id="whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc",
        name="Orca Whirlpool",
        instruction_labels={DEFAULT_LABEL_KEY: "Swap Tokens"},
    ),
    ProgramDescriptor(
        id="9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
        name="Serum DEX v3",
        instruction_labels={DEFAULT_LABEL_KEY: "DEX Operation"},
    ),
    # Staking
    ProgramDescriptor(
        id="Stake11111111111111111111111111111111111111",
        name="Stake Program",
        instruction_labels={
            "initialize": "Initialize Stake Account",
            "delegate": "Delegate Stake",
            "withdraw": "Withdraw Stake",
            "deactivate": "Deactivate Stake",
            "split": "Split Stake",
            "merge": "Merge Stake",
            "authorize": "Authorize Stake",
            "authorizeWithSeed": "Authorize with Seed",
        },
    ),
    ProgramDescriptor(
        id="MarBmsSgKXdrN1egZf5sqe1TMai9K1rChYNDJgjq7aD",
        name="Marinade.Finance",
        instruction_labels={DEFAULT_LABEL_KEY: "Stake SOL"},
    ),
    # Other
    ProgramDescriptor(
        id="ComputeBudget111111111111111111111111111111",
        name="Compute Budget Program",
        instruction_labels={DEFAULT_LABEL_KEY: "Set Compute Unit Limit"},
    ),
    ProgramDescriptor(
        id="M2mx93ekt1fmXSVkTrUL9xVFHkmME8HTUi5Cyc5aF7K",
        name="Magic Eden v2",
        instruction_labels={DEFAULT_LABEL_KEY: "Magic Eden Operation"},
    ),
    ProgramDescriptor(
        id="auth9SigNpDKz4sJJ1DfCTuZrZNSAgh9sFD3rboVmgg",
        name="Token Auth Rules",
        instruction_labels={DEFAULT_LABEL_KEY: "Token Authorization Rules"},
    ),
    ProgramDescriptor(
        id=MEMO_PROGRAM_ID,
        name="Memo Program",
        instruction_labels={DEFAULT_LABEL_KEY: "Add Memo"},
    ),
    ProgramDescriptor(
        id=MEMO_V1_PROGRAM_ID,
        name="Memo Program v1",
        instruction_labels={DEFAULT_LABEL_KEY: "Add Memo"},
    ),
)


def unknown_program(program_id: str) -> ProgramDescriptor:
    """Descriptor synthesized for an id missing from the registry."""
    return ProgramDescriptor(
        id=program_id,
        name=f"Unknown Program ({program_id})",
        instruction_labels={DEFAULT_LABEL_KEY: UNKNOWN_INSTRUCTION},
    )


def instruction_label(descriptor: ProgramDescriptor, raw_tag: str | None) -> str:
    """
    Resolve a display label for an instruction type tag.

    Order: exact tag match -> descriptor default -> raw tag verbatim -> "Unknown Instruction".
    """
    labels = descriptor.instruction_labels
    if raw_tag and raw_tag in labels:
        return labels[raw_tag]
    default = labels.get(DEFAULT_LABEL_KEY)
    if default:
        return default
    if raw_tag:
        return raw_tag
    return UNKNOWN_INSTRUCTION


class ProgramRegistry:
    """Read-only id -> ProgramDescriptor catalog."""

    def __init__(self, descriptors: Iterable[ProgramDescriptor] = KNOWN_PROGRAMS) -> None:
        self._by_id: dict[str, ProgramDescriptor] = {d.id: d for d in descriptors}

    def __contains__(self, program_id: object) -> bool:
        return program_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def lookup(self, program_id: str) -> ProgramDescriptor:
        """Return the descriptor for program_id; never raises."""
        known = self._by_id.get(program_id)
        if known is not None:
            return known
        return unknown_program(program_id)

    def label(self, descriptor: ProgramDescriptor, raw_tag: str | None) -> str:
        return instruction_label(descriptor, raw_tag)


@functools.lru_cache(maxsize=1)
def default_registry() -> ProgramRegistry:
    """Process-wide registry built from KNOWN_PROGRAMS."""
    return ProgramRegistry(KNOWN_PROGRAMS)
