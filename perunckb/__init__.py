"""Perun channels on CKB: secp256k1 wallets, participant addresses, molecule encoding and transaction balancing."""

__version__ = "0.1.0"