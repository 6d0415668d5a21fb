"""A general transaction builder with pluggable script handlers."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from perunckb.molecule import pack_bytes, pack_table, unpack_bytes, unpack_table
from perunckb.types import (
    CellDep,
    CellInput,
    CellOutput,
    ScriptGroup,
    Transaction,
    TransactionWithScriptGroups,
)

WITNESS_LOCK = "lock"
WITNESS_INPUT_TYPE = "input_type"
WITNESS_OUTPUT_TYPE = "output_type"
_WITNESS_FIELDS = (WITNESS_LOCK, WITNESS_INPUT_TYPE, WITNESS_OUTPUT_TYPE)

SIGNATURE_PLACEHOLDER_LENGTH = 65


class ScriptHandler(Protocol):
    def build_transaction(self, builder: Any, group: Optional[ScriptGroup], context: Any) -> bool:
        ...


def _unpack_witness_args(data: bytes) -> list[Optional[bytes]]:
    if not data:
        return [None, None, None]
    return [unpack_bytes(f) if f else None for f in unpack_table(data, 3)]


def _pack_witness_args(fields: list[Optional[bytes]]) -> bytes:
    return pack_table([b"" if f is None else pack_bytes(f) for f in fields])


class TransactionBuilder:
    """Collects the parts of a transaction and hands script groups to handlers."""

    def __init__(self) -> None:
        self.version = 0
        self.cell_deps: list[CellDep] = []
        self.header_deps: list[bytes] = []
        self.inputs: list[CellInput] = []
        self.outputs: list[CellOutput] = []
        self.outputs_data: list[bytes] = []
        self.witnesses: list[bytes] = []
        self.script_handlers: list[ScriptHandler] = []

    def register(self, handler: ScriptHandler) -> None:
        self.script_handlers.append(handler)

    def add_input(self, cell_input: CellInput) -> int:
        """Append an input and return its index."""
        self.inputs.append(cell_input)
        return len(self.inputs) - 1

    def add_output(self, output: CellOutput, data: Optional[bytes]) -> int:
        """Append an output with its data and return its index."""
        self.outputs.append(output)
        self.outputs_data.append(bytes(data) if data is not None else b"")
        return len(self.outputs) - 1

    def add_cell_dep(self, dep: CellDep) -> int:
        """Add a cell dependency once; return its index."""
        for position, existing in enumerate(self.cell_deps):
            if existing == dep:
                return position
        self.cell_deps.append(dep)
        return len(self.cell_deps) - 1

    def add_header_dep(self, header: bytes) -> int:
        """Add a header dependency once; return its index."""
        header = bytes(header)
        try:
            return self.header_deps.index(header)
        except ValueError:
            self.header_deps.append(header)
            return len(self.header_deps) - 1

    def set_witness(self, index: int, witness_type: str, data: bytes) -> None:
        """Set one field of the WitnessArgs at ``index``, growing the witness list."""
        if index < 0:
            raise ValueError(f"witness index {index} is negative")
        if witness_type not in _WITNESS_FIELDS:
            raise ValueError(f"unknown witness type {witness_type!r}")
        if len(self.witnesses) <= index:
            self.witnesses.extend(b"" for _ in range(index + 1 - len(self.witnesses)))
        fields = _unpack_witness_args(self.witnesses[index])
        fields[_WITNESS_FIELDS.index(witness_type)] = bytes(data)
        self.witnesses[index] = _pack_witness_args(fields)

    def build_transaction(self) -> TransactionWithScriptGroups:
        """A snapshot of the transaction built so far."""
        tx = Transaction(
            version=self.version,
            cell_deps=list(self.cell_deps),
            header_deps=list(self.header_deps),
            inputs=list(self.inputs),
            outputs=list(self.outputs),
            outputs_data=list(self.outputs_data),
            witnesses=list(self.witnesses),
        )
        return TransactionWithScriptGroups(tx, [])


class Secp256k1Blake160SighashAllScriptHandler:
    """Prepares inputs locked by the secp256k1_blake160_sighash_all script."""

    def __init__(self, cell_dep: CellDep, code_hash: bytes) -> None:
        self.cell_dep = cell_dep
        self.code_hash = bytes(code_hash)

    def _matches(self, group: Optional[ScriptGroup]) -> bool:
        return group is not None and group.script is not None and group.script.code_hash == self.code_hash

    def build_transaction(self, builder: TransactionBuilder, group: Optional[ScriptGroup], context: Any) -> bool:
        """Reserve the signature slot of the group's first input; False if not ours."""
        if not self._matches(group):
            return False
        if not group.input_indices:
            raise ValueError("script group has no inputs")
        builder.set_witness(group.input_indices[0], WITNESS_LOCK, bytes(SIGNATURE_PLACEHOLDER_LENGTH))
        builder.add_cell_dep(self.cell_dep)
        return True