"""Core CKB data types: scripts, cells, transactions and addresses."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from perunckb.molecule import pack_bytes, pack_table, unpack_bytes, unpack_table

SHANNONS_PER_CKBYTE = 100_000_000
ZERO_HASH = bytes(32)
HASH_LENGTH = 32

_CKB_HASH_PERSONALIZATION = b"ckb-default-hash"


def ckb_hash(data: bytes) -> bytes:
    """Blake2b-256 with the CKB personalization."""
    return hashlib.blake2b(bytes(data), digest_size=32, person=_CKB_HASH_PERSONALIZATION).digest()


def blake160(data: bytes) -> bytes:
    """First 20 bytes of the CKB hash."""
    return ckb_hash(data)[:20]


class HashType(Enum):
    """How a script's code hash is matched; the value is its wire byte."""

    DATA = 0
    TYPE = 1
    DATA1 = 2
    DATA2 = 4


class ScriptType(Enum):
    LOCK = "lock"
    TYPE = "type"


class DepType(Enum):
    CODE = "code"
    DEP_GROUP = "dep_group"


class Network(Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"


@dataclass(frozen=True)
class Script:
    """A CKB script: code hash, hash type and arguments."""

    code_hash: bytes
    hash_type: HashType
    args: bytes = b""

    def __post_init__(self) -> None:
        object.__setattr__(self, "code_hash", bytes(self.code_hash))
        object.__setattr__(self, "args", bytes(self.args))
        object.__setattr__(self, "hash_type", HashType(self.hash_type))
        if len(self.code_hash) != HASH_LENGTH:
            raise ValueError(f"code hash must be {HASH_LENGTH} bytes, got {len(self.code_hash)}")

    def pack(self) -> bytes:
        """Molecule encoding of the script."""
        return pack_table([self.code_hash, bytes([self.hash_type.value]), pack_bytes(self.args)])

    @classmethod
    def unpack(cls, data: bytes) -> Script:
        """Decode a molecule encoded script."""
        code_hash, hash_type, args = unpack_table(data, 3)
        if len(code_hash) != HASH_LENGTH:
            raise ValueError("script code hash has the wrong length")
        if len(hash_type) != 1:
            raise ValueError("script hash type must be a single byte")
        try:
            kind = HashType(hash_type[0])
        except ValueError:
            raise ValueError(f"unknown script hash type {hash_type[0]}") from None
        return cls(code_hash, kind, unpack_bytes(args))

    def hash(self) -> bytes:
        """CKB hash of the packed script."""
        return ckb_hash(self.pack())

    def occupied_capacity(self) -> int:
        """Number of bytes the script occupies in a cell."""
        return len(self.args) + HASH_LENGTH + 1


@dataclass(frozen=True)
class OutPoint:
    tx_hash: bytes
    index: int

    def __str__(self) -> str:
        return f"0x{self.tx_hash.hex()}:{self.index}"


@dataclass
class CellInput:
    previous_output: OutPoint
    since: int = 0


@dataclass(frozen=True)
class CellDep:
    out_point: OutPoint
    dep_type: DepType = DepType.CODE


@dataclass
class CellOutput:
    """A cell: capacity in shannons, lock script and optional type script."""

    capacity: int
    lock: Script
    type_script: Optional[Script] = None

    def occupied_capacity(self, data: bytes) -> int:
        """Capacity in shannons the cell needs to hold itself and ``data``."""
        occupied = 8 + len(data) + self.lock.occupied_capacity()
        if self.type_script is not None:
            occupied += self.type_script.occupied_capacity()
        return occupied * SHANNONS_PER_CKBYTE


@dataclass
class TransactionInput:
    """A live cell offered as a transaction input."""

    out_point: OutPoint
    output: CellOutput
    output_data: bytes = b""


@dataclass
class LiveCell:
    """A cell looked up on chain together with its data."""

    output: CellOutput
    data: bytes = b""
    status: str = "live"


@dataclass
class ScriptGroup:
    script: Script
    group_type: ScriptType
    input_indices: list[int] = field(default_factory=list)
    output_indices: list[int] = field(default_factory=list)


@dataclass
class Transaction:
    version: int = 0
    cell_deps: list[CellDep] = field(default_factory=list)
    header_deps: list[bytes] = field(default_factory=list)
    inputs: list[CellInput] = field(default_factory=list)
    outputs: list[CellOutput] = field(default_factory=list)
    outputs_data: list[bytes] = field(default_factory=list)
    witnesses: list[bytes] = field(default_factory=list)


@dataclass
class TransactionWithScriptGroups:
    tx_view: Transaction
    script_groups: list[ScriptGroup] = field(default_factory=list)


@dataclass(frozen=True)
class Address:
    script: Script
    network: Network