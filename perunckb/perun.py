"""Transaction builder for Perun channel transactions on CKB.

The builder completes what a caller specified: it adds inputs from the
registered cell iterators until every output is funded, adds change cells
for CKBytes and UDTs, and keeps the script groups of the transaction
up to date.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from enum import Enum
from itertools import chain
from typing import Any, Optional, Protocol

from perunckb.assets import AssetInformation, calculate_cell_capacity
from perunckb.builder import Secp256k1Blake160SighashAllScriptHandler, TransactionBuilder
from perunckb.molecule import pack_uint128
from perunckb.types import (
    ZERO_HASH,
    Address,
    CellDep,
    CellInput,
    CellOutput,
    LiveCell,
    OutPoint,
    Script,
    ScriptGroup,
    ScriptType,
    TransactionInput,
    TransactionWithScriptGroups,
)

CKBYTE = 100_000_000
DEFAULT_FEE_SHANNON = CKBYTE


class BuildError(Exception):
    """Raised when a transaction cannot be completed."""


class LiveCellFetcher(Protocol):
    def get_live_cell(self, out_point: OutPoint, with_data: bool) -> Optional[LiveCell]:
        """Return the live cell at ``out_point`` or None."""
        ...


class _Direction(Enum):
    INPUT = "input"
    OUTPUT = "output"
    NONE = "none"


@contextmanager
def _stage(description: str):
    try:
        yield
    except BuildError as exc:
        raise BuildError(f"{description}: {exc}") from exc


class PerunTransactionBuilder(TransactionBuilder):
    """Builds and balances transactions for Perun channel actions.

    Inputs that fund the transaction are drawn from ``iterators``, keyed by
    the hash of the type script of the cells they yield; the zero hash
    stands for plain CKByte cells. Change is sent to ``change_address``.
    """

    def __init__(
        self,
        client: LiveCellFetcher,
        iterators: Mapping[bytes, Iterable[TransactionInput]],
        known_udts: Mapping[bytes, Script],
        change_address: Address,
        lock_script_dep: CellDep,
        lock_script_code_hash: Optional[bytes] = None,
        fee_shannon: int = DEFAULT_FEE_SHANNON,
    ) -> None:
        super().__init__()
        code_hash = lock_script_code_hash if lock_script_code_hash is not None else change_address.script.code_hash
        self.register(Secp256k1Blake160SighashAllScriptHandler(lock_script_dep, code_hash))
        self._client = client
        self._iterators: dict[bytes, Iterator[TransactionInput]] = {
            bytes(h): iter(cells) for h, cells in iterators.items()
        }
        self._known_udts: dict[bytes, Script] = {bytes(h): s for h, s in known_udts.items()}
        self._change_address = change_address
        self.script_groups: list[ScriptGroup] = []
        self._script_group_map: dict[bytes, int] = {}
        self._ckb_change_cell_index = -1
        self._udt_change_cell_indices: dict[bytes, int] = {h: -1 for h in self._known_udts}
        self.fee_shannon = fee_shannon

    @property
    def default_lock_script(self) -> Script:
        """The lock script of the change address."""
        return self._change_address.script

    def add_script_group(self, group: ScriptGroup) -> int:
        """Append a script group and return its index."""
        self.script_groups.append(group)
        return len(self.script_groups) - 1

    def build(self, *args: Any) -> TransactionWithScriptGroups:
        """Balance the transaction, run the handlers and return the result."""
        contexts = list(args) or [None]
        with _stage("initializing script groups"):
            self._initialize_script_groups()
        with _stage("balancing transaction"):
            self._balance_transaction()
        with _stage("processing outputs"):
            self._process_outputs(contexts)
        with _stage("processing inputs"):
            self._process_inputs(contexts)
        with _stage("handling CKB fee"):
            self._handle_ckb_fee()
        tx = self.build_transaction()
        tx.script_groups = self._valid_script_groups()
        return tx

    # Script groups.

    def _initialize_script_groups(self) -> None:
        for position, output in enumerate(self.outputs):
            self._initialize_script(output.lock, ScriptType.LOCK, position, _Direction.OUTPUT)
            self._initialize_script(output.type_script, ScriptType.TYPE, position, _Direction.OUTPUT)
        for position, cell_input in enumerate(self.inputs):
            with _stage("getting live cell when resolving script groups"):
                cell = self._resolve(cell_input.previous_output, with_data=False)
            self._initialize_script(cell.output.lock, ScriptType.LOCK, position, _Direction.INPUT)
            self._initialize_script(cell.output.type_script, ScriptType.TYPE, position, _Direction.INPUT)
        self._initialize_script(self.default_lock_script, ScriptType.LOCK, -1, _Direction.NONE)

    def _initialize_script(
        self, script: Optional[Script], script_type: ScriptType, position: int, direction: _Direction
    ) -> None:
        if script is None:
            return
        script_hash = script.hash()
        group_index = self._script_group_map.get(script_hash)
        if group_index is None:
            group_index = self.add_script_group(ScriptGroup(script, script_type))
            self._script_group_map[script_hash] = group_index
        group = self.script_groups[group_index]
        if direction is _Direction.INPUT:
            group.input_indices.append(position)
        elif direction is _Direction.OUTPUT:
            group.output_indices.append(position)

    def _find_group(self, script_hash: bytes) -> Optional[ScriptGroup]:
        group_index = self._script_group_map.get(script_hash)
        return None if group_index is None else self.script_groups[group_index]

    def _script_groups_for_hash(self, asset_hash: bytes) -> tuple[Optional[ScriptGroup], Optional[ScriptGroup]]:
        lock_group = self._find_group(self.default_lock_script.hash())
        type_group = self._find_group(asset_hash) if asset_hash != ZERO_HASH else None
        return lock_group, type_group

    def _group_for_script(self, script: Optional[Script]) -> Optional[ScriptGroup]:
        if script is None:
            return None
        script_hash = script.hash()
        group = self._find_group(script_hash)
        if group is None:
            raise BuildError(f"no script group for script {script_hash.hex()}")
        return group

    def _valid_script_groups(self) -> list[ScriptGroup]:
        """Groups that are evaluated when the transaction is verified."""
        valid = []
        for group in self.script_groups:
            if group.group_type is ScriptType.LOCK and not group.input_indices:
                continue
            if group.group_type is ScriptType.TYPE and not (group.input_indices or group.output_indices):
                continue
            valid.append(group)
        return valid

    # Handlers.

    def _process_outputs(self, contexts: list[Any]) -> None:
        for output in self.outputs:
            with _stage("processing output type script"):
                self._call_handlers(self._group_for_script(output.type_script), contexts)

    def _process_inputs(self, contexts: list[Any]) -> None:
        for cell_input in self.inputs:
            with _stage("processing input lock script"):
                cell = self._resolve(cell_input.previous_output, with_data=False)
                self._call_handlers(self._group_for_script(cell.output.lock), contexts)
            with _stage("processing input type script"):
                self._call_handlers(self._group_for_script(cell.output.type_script), contexts)

    def _call_handlers(self, group: Optional[ScriptGroup], contexts: list[Any]) -> None:
        if group is None:
            return
        for handler in self.script_handlers:
            for context in contexts:
                try:
                    handler.build_transaction(self, group, context)
                except Exception as exc:
                    raise BuildError(
                        f"building transaction with handler for {group.group_type.value} "
                        f"script {group.script.hash().hex()}: {exc}"
                    ) from exc

    # Balancing.

    def _resolve(self, out_point: OutPoint, with_data: bool) -> LiveCell:
        cell = self._client.get_live_cell(out_point, with_data)
        if cell is None:
            raise BuildError(f"resolving input cell: no live cell at {out_point}")
        return cell

    def _balance_transaction(self) -> None:
        provided = AssetInformation(self._known_udts)
        required = AssetInformation(self._known_udts)
        required.add_asset_amount(ZERO_HASH, self.fee_shannon)

        for output, data in zip(self.outputs, self.outputs_data):
            required.add_values_from_output(output, data)
        for cell_input in self.inputs:
            cell = self._resolve(cell_input.previous_output, with_data=True)
            provided.add_values_from_output(cell.output, cell.data)

        if provided == required:
            return

        for asset_hash, required_amount in required.amounts.items():
            if asset_hash == ZERO_HASH:
                # CKBytes are completed last: UDT cells may already cover them.
                continue
            provided_amount = provided.asset_amount(asset_hash)
            if provided_amount < required_amount:
                with _stage(f"adding inputs and change for UDT {asset_hash.hex()} funding"):
                    self._add_inputs_and_change_for_funding(
                        asset_hash, required_amount - provided_amount, required, provided
                    )
            elif provided_amount > required_amount:
                with _stage(f"adding change cell for UDT {asset_hash.hex()}"):
                    self._add_change_and_adjust_required_funding(
                        asset_hash, provided_amount - required_amount, required
                    )

        with _stage("final balancing of CKB capacity"):
            self._complete_ckb_capacity(required, provided)

    def _complete_ckb_capacity(self, required: AssetInformation, provided: AssetInformation) -> None:
        provided_ckb = provided.ckb_amount()
        required_ckb = required.ckb_amount()
        if provided_ckb >= required_ckb + self._ckb_change_cell_capacity():
            self._add_or_update_change_cell(ZERO_HASH, provided_ckb - required_ckb)
            return
        if provided_ckb < required_ckb:
            self._add_inputs_and_change_for_ckb(provided_ckb, required_ckb, required, provided)

    def _add_inputs_and_change_for_ckb(
        self, provided_ckb: int, requested_ckb: int, required: AssetInformation, provided: AssetInformation
    ) -> None:
        iterator = self._iterators.get(ZERO_HASH)
        with _stage("adding inputs for ckb funding"):
            provided.merge(self._add_inputs_for_funding(iterator, ZERO_HASH, requested_ckb - provided_ckb))

        change_capacity = self._ckb_change_cell_capacity()
        provided_ckb = provided.ckb_amount()
        required_ckb = required.ckb_amount()
        if provided_ckb < required_ckb + change_capacity:
            missing = required_ckb + change_capacity - provided_ckb
            with _stage("adding inputs for ckb change funding"):
                provided.merge(self._add_inputs_for_funding(iterator, ZERO_HASH, missing))

        change = provided.ckb_amount() - required.ckb_amount()
        with _stage("adding change cell for CKB"):
            self._add_change_and_adjust_required_funding(ZERO_HASH, change, required)

    def _add_inputs_and_change_for_funding(
        self, asset_hash: bytes, requested_amount: int, required: AssetInformation, provided: AssetInformation
    ) -> None:
        provided_amount = provided.asset_amount(asset_hash)
        if provided_amount < requested_amount:
            with _stage("adding inputs for funding"):
                provided.merge(
                    self._add_inputs_for_funding(
                        self._iterators.get(asset_hash), asset_hash, requested_amount - provided_amount
                    )
                )

        funded = provided.clone().asset_amount(asset_hash)
        if funded < requested_amount:
            raise BuildError(f"not enough funds for asset: 0x{asset_hash.hex()}")
        if funded == requested_amount:
            return
        with _stage(f"adding change cell for asset 0x{asset_hash.hex()}"):
            self._add_change_and_adjust_required_funding(asset_hash, funded - requested_amount, required)

    def _add_inputs_for_funding(
        self, iterator: Optional[Iterator[TransactionInput]], asset_hash: bytes, required_amount: int
    ) -> AssetInformation:
        if iterator is None:
            raise BuildError(f"no iterator for asset 0x{asset_hash.hex()} registered")
        first = next(iterator, None)
        if first is None:
            raise BuildError(f"empty iterator for asset 0x{asset_hash.hex()}")

        funded = AssetInformation(self._known_udts)
        for offered in chain([first], iterator):
            lock_group, type_group = self._script_groups_for_hash(asset_hash)
            if lock_group is None or (asset_hash != ZERO_HASH and type_group is None):
                raise BuildError(f"no script group for asset {asset_hash.hex()}")

            self.inputs.append(CellInput(offered.out_point, 0))
            funded.add_values_from_output(offered.output, offered.output_data)
            self.witnesses.append(b"")

            position = len(self.inputs) - 1
            lock_group.input_indices.append(position)
            if type_group is not None:
                type_group.input_indices.append(position)
            if funded.asset_amount(asset_hash) >= required_amount:
                break
        return funded

    def _add_change_and_adjust_required_funding(
        self, asset_hash: bytes, change: int, required: AssetInformation
    ) -> None:
        required.add_asset_amount(ZERO_HASH, self._required_capacity(asset_hash))
        self._add_or_update_change_cell(asset_hash, change)

    def _add_or_update_change_cell(self, asset_hash: bytes, amount: int) -> None:
        if asset_hash == ZERO_HASH:
            self._add_or_update_ckb_change_cell(amount)
        else:
            self._add_or_update_udt_change_cell(asset_hash, amount)

    def _add_or_update_ckb_change_cell(self, amount: int) -> None:
        if self._ckb_change_cell_index != -1:
            self.outputs[self._ckb_change_cell_index].capacity = amount
            return
        self.outputs.append(CellOutput(amount, self.default_lock_script, None))
        self.outputs_data.append(b"")
        self._ckb_change_cell_index = len(self.outputs) - 1
        lock_group, _ = self._script_groups_for_hash(ZERO_HASH)
        if lock_group is not None:
            lock_group.output_indices.append(self._ckb_change_cell_index)

    def _add_or_update_udt_change_cell(self, asset_hash: bytes, amount: int) -> None:
        try:
            data = pack_uint128(amount)
        except ValueError as exc:
            raise BuildError(f"encoding amount for {asset_hash.hex()} as Uint128: {exc}") from exc

        index = self._udt_change_cell_indices.get(asset_hash, -1)
        if index != -1:
            self.outputs_data[index] = data
            return

        udt_script = self._known_udts.get(asset_hash)
        if udt_script is None:
            raise BuildError(f"unknown UDT {asset_hash.hex()}")
        output = CellOutput(self._required_capacity(asset_hash), self.default_lock_script, udt_script)
        self.outputs.append(output)
        self.outputs_data.append(data)

        index = len(self.outputs) - 1
        lock_group, type_group = self._script_groups_for_hash(asset_hash)
        if lock_group is not None:
            lock_group.output_indices.append(index)
        if type_group is not None:
            type_group.output_indices.append(index)
        self._udt_change_cell_indices[asset_hash] = index

    def _required_capacity(self, asset_hash: bytes) -> int:
        """Shannons needed for a change cell holding the given asset."""
        type_script = None
        if asset_hash != ZERO_HASH:
            type_script = self._known_udts.get(asset_hash)
            if type_script is None:
                raise BuildError(f"unknown UDT {asset_hash.hex()}")
        return calculate_cell_capacity(CellOutput(0, self.default_lock_script, type_script))

    def _ckb_change_cell_capacity(self) -> int:
        return self._required_capacity(ZERO_HASH)

    def _handle_ckb_fee(self) -> None:
        if self._ckb_change_cell_index == -1:
            raise BuildError("no CKB change cell found")
        change_cell = self.outputs[self._ckb_change_cell_index]
        if change_cell.capacity <= self.fee_shannon:
            raise BuildError(
                f"insufficient CKB change cell capacity: {change_cell.capacity} < {self.fee_shannon}"
            )