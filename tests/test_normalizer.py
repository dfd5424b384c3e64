"""
Tests for the instruction normalizer (interpreter/normalizer.py).
"""

from __future__ import annotations

import base58
import pytest

from backend_txlens.core.exceptions import DecodeError
from backend_txlens.interpreter.models import OpaqueInstruction, ParsedInstruction
from backend_txlens.interpreter.normalizer import InstructionNormalizer, decode_instruction_data
from backend_txlens.interpreter.programs import MEMO_PROGRAM_ID

from conftest import SYSTEM_PROGRAM, WALLET_A, opaque, system_transfer


def _b58(raw: bytes) -> str:
    return base58.b58encode(raw).decode("ascii")


def test_decode_instruction_data_text():
    assert decode_instruction_data(_b58(b"hello world")) == "hello world"


@pytest.mark.parametrize("data", ["", "0OIl", _b58(b"\x00\x01\x02\xff"), _b58(b"\x00\x01\x02\x03")])
def test_decode_instruction_data_rejects_non_text(data):
    with pytest.raises(DecodeError):
        decode_instruction_data(data)


def test_parsed_instruction_params_pass_through():
    detail = InstructionNormalizer().normalize(system_transfer(WALLET_A, "Dest", 5000))
    assert detail.program_id == SYSTEM_PROGRAM
    assert detail.program_name == "System Program"
    assert detail.instruction_name == "Transfer SOL"
    assert detail.params == {"source": WALLET_A, "destination": "Dest", "lamports": 5000}
    assert detail.children == []


def test_parsed_params_are_copied():
    ix = ParsedInstruction(program_id=SYSTEM_PROGRAM, program="system", type="transfer", info={"lamports": 1})
    detail = InstructionNormalizer().normalize(ix)
    detail.params["lamports"] = 2
    assert ix.info["lamports"] == 1


def test_opaque_memo_is_decoded_to_text():
    detail = InstructionNormalizer().normalize(opaque(MEMO_PROGRAM_ID, _b58(b"gm"), [WALLET_A]))
    assert detail.program_name == "Memo Program"
    assert detail.instruction_name == "Add Memo"
    assert detail.params == {"data": "gm", "accounts": [WALLET_A]}


def test_opaque_binary_data_passes_through_raw():
    raw = _b58(b"\x00\x01\x02\xff")
    detail = InstructionNormalizer().normalize(opaque("X", raw, ["acc1", "acc2"]))
    assert detail.program_name == "Unknown Program (X)"
    assert detail.instruction_name == "Unknown Instruction"
    assert detail.params == {"data": raw, "accounts": ["acc1", "acc2"]}


def test_opaque_known_program_without_default_label():
    detail = InstructionNormalizer().normalize(OpaqueInstruction(program_id=SYSTEM_PROGRAM, data=""))
    assert detail.program_name == "System Program"
    assert detail.instruction_name == "Unknown Instruction"


def test_children_recurse_to_any_depth():
    grandchild = ParsedInstruction(program_id=SYSTEM_PROGRAM, program="system", type="createAccount", info={})
    child = OpaqueInstruction(program_id="Y", data="", inner=[grandchild])
    top = ParsedInstruction(program_id=SYSTEM_PROGRAM, program="system", type="transfer", info={}, inner=[child])
    detail = InstructionNormalizer().normalize(top)
    assert [c.program_id for c in detail.children] == ["Y"]
    assert detail.children[0].children[0].instruction_name == "Create Account"


def test_explicit_inner_list_overrides_nested():
    nested = OpaqueInstruction(program_id="Nested", data="")
    top = OpaqueInstruction(program_id="Top", data="", inner=[nested])
    detail = InstructionNormalizer().normalize(top, [opaque("Associated")])
    assert [c.program_id for c in detail.children] == ["Associated"]


def test_unrecognized_input_never_raises():
    detail = InstructionNormalizer().normalize("garbage")  # type: ignore[arg-type]
    assert detail.instruction_name == "Unknown Instruction"
    assert detail.params == {"raw": "'garbage'"}


def test_memo_parsed_as_plain_string():
    item = {"program": "spl-memo", "programId": MEMO_PROGRAM_ID, "parsed": "hello"}
    detail = InstructionNormalizer().normalize(item)
    assert detail.instruction_name == "Add Memo"
    assert detail.params == {"data": "hello"}


def test_non_mapping_info_kept_under_data():
    item = system_transfer(WALLET_A, "Dest", 1)
    item["parsed"]["info"] = "opaque-info"
    detail = InstructionNormalizer().normalize(item)
    assert detail.instruction_name == "Transfer SOL"
    assert detail.params == {"data": "opaque-info"}


def test_to_dict_shape():
    detail = InstructionNormalizer().normalize(system_transfer(WALLET_A, "Dest", 1), [opaque("X")])
    out = detail.to_dict()
    assert set(out) == {"program_id", "program_name", "instruction_name", "params", "inner_instructions"}
    assert out["inner_instructions"][0]["program_name"] == "Unknown Program (X)"
