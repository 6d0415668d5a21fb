"""Bookkeeping of CKBytes and UDT amounts carried by transaction cells."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from perunckb.molecule import pack_uint128
from perunckb.types import ZERO_HASH, CellOutput, Script

_UDT_AMOUNT_READ_SIZE = 8


def calculate_cell_capacity(cell: CellOutput) -> int:
    """Capacity in shannons needed to store ``cell``.

    Cells with a type script are assumed to hold a Uint128 UDT amount.
    """
    if cell.type_script is None:
        return cell.occupied_capacity(b"")
    return cell.occupied_capacity(pack_uint128(0))


class AssetInformation:
    """Amounts per asset, keyed by the hash of the asset's type script.

    The zero hash stands for native CKBytes.
    """

    def __init__(self, known_udts: Optional[Mapping[bytes, Script]] = None) -> None:
        self._amounts: dict[bytes, int] = {}
        self._known_udts: Mapping[bytes, Script] = known_udts if known_udts is not None else {}

    @property
    def amounts(self) -> dict[bytes, int]:
        """A snapshot of all recorded amounts."""
        return dict(self._amounts)

    @property
    def known_udts(self) -> Mapping[bytes, Script]:
        return self._known_udts

    def clone(self) -> AssetInformation:
        """A copy with its own amounts that shares the known UDTs."""
        copy = AssetInformation(self._known_udts)
        copy._amounts = dict(self._amounts)
        return copy

    def merge(self, other: AssetInformation) -> None:
        """Add all amounts of ``other`` to this one."""
        for asset_hash, amount in other._amounts.items():
            self.add_asset_amount(asset_hash, amount)

    def add_asset_amount(self, asset_hash: bytes, amount: int) -> None:
        key = bytes(asset_hash)
        self._amounts[key] = self._amounts.get(key, 0) + amount

    def asset_amount(self, asset_hash: bytes) -> int:
        return self._amounts.get(bytes(asset_hash), 0)

    def ckb_amount(self) -> int:
        return self.asset_amount(ZERO_HASH)

    def add_values_from_output(self, output: CellOutput, data: bytes) -> None:
        """Add the cell's capacity and, for a known UDT, the amount in its data."""
        self.add_asset_amount(ZERO_HASH, output.capacity)
        if self.is_udt(output.type_script):
            if data is None or len(data) < _UDT_AMOUNT_READ_SIZE:
                raise ValueError("UDT cell data is too short to hold an amount")
            amount = int.from_bytes(bytes(data[:_UDT_AMOUNT_READ_SIZE]), "little")
            self.add_asset_amount(output.type_script.hash(), amount)

    def is_udt(self, type_script: Optional[Script]) -> bool:
        """Whether ``type_script`` belongs to a known UDT."""
        if type_script is None:
            return False
        return type_script.hash() in self._known_udts

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssetInformation):
            return NotImplemented
        if len(self._amounts) != len(other._amounts):
            return False
        return all(other._amounts.get(h, 0) == a for h, a in self._amounts.items())

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        shown = {h.hex(): a for h, a in self._amounts.items()}
        return f"AssetInformation({shown})"