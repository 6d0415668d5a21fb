# perunckb

Building blocks for Perun payment channels on the CKB blockchain:

- **Wallets and accounts** on secp256k1. Messages are hashed with Blake2b-256
  before signing, and signatures are DER-encoded and padded to a fixed length.
- **Participant addresses** that carry a public key together with the payment
  and unlock scripts of a channel party. Each has an off-chain and an on-chain
  molecule encoding.
- **Transaction balancing.** `PerunTransactionBuilder` takes the inputs and
  outputs that a caller has already put in a transaction. It then draws cells
  from per-asset iterators until CKBytes and UDT tokens balance, adds change
  cells under the change address's lock script, and keeps the fee back.

## Modules

| Module | Contents |
| --- | --- |
| `perunckb.molecule` | Molecule encoding: `pack_uint32`, `pack_uint64`, `pack_uint128`, `unpack_uint128`, `pack_bytes`, `unpack_bytes`, `pack_table`, `unpack_table` |
| `perunckb.types` | Chain types (`Script`, `HashType`, `OutPoint`, `CellInput`, `CellDep`, `CellOutput`, `TransactionInput`, `LiveCell`, `ScriptGroup`, `Transaction`, `TransactionWithScriptGroups`, `Address`, `Network`) and the hashes `ckb_hash` and `blake160` |
| `perunckb.signature` | `pad_der_encoded_signature`, `remove_padding`, `SignatureError` |
| `perunckb.address` | `PublicKey`, `Participant`, `new_default_participant`, `secp256k1_blake160_sighash_all`, `zero_address`, `pack_sec1_encoded_pubkey`, `unpack_sec1_encoded_pubkey`, `as_participant` |
| `perunckb.account` | `Account`, `new_account` |
| `perunckb.backend` | `new_address`, `decode_sig`, `verify_signature` |
| `perunckb.wallet` | `EphemeralWallet`, `WalletError` |
| `perunckb.assets` | `AssetInformation`, `calculate_cell_capacity` |
| `perunckb.builder` | `TransactionBuilder`, `Secp256k1Blake160SighashAllScriptHandler` |
| `perunckb.perun` | `PerunTransactionBuilder`, `BuildError`, `DEFAULT_FEE_SHANNON` |

## Signing and verifying

```python
from perunckb.backend import verify_signature
from perunckb.wallet import EphemeralWallet

wallet = EphemeralWallet()
account = wallet.add_new_account()

unlocked = wallet.unlock(account.address())
message = b"hello world"
sig = unlocked.sign_data(message)

assert verify_signature(message, sig, account.address())
```

`Account.sign_data` signs the plain Blake2b-256 digest of the data, normalises
the signature to low-s, and returns it padded to 73 bytes.

`verify_signature` behaves as follows:

- It expects the plain message and a padded signature.
- It returns `False` when the signature does not match.
- It raises `TypeError` when the address is not a `Participant`.
- It raises `SignatureError` when the padding is broken.
- It raises `ValueError` when the DER encoding cannot be parsed.

`decode_sig` reads exactly one padded signature from a binary stream. It raises
`EOFError` if the stream ends first.

`EphemeralWallet` keeps its accounts in memory only, and access to it is
guarded by a lock. Adding the same account twice raises `WalletError`, and so
does unlocking an address that the wallet does not hold. The wallet counts
usage with `increment_usage`, `decrement_usage` and `lock_all`, but these counts
never lock an account.

## Padded signatures

A DER-encoded secp256k1 signature is at most 72 bytes long, and its length
depends on the values of r and s. Channel states need signatures of one fixed
length. Each signature therefore gets a marker byte `0xff` followed by zero
bytes, up to 73 bytes in all:

```python
from perunckb.signature import pad_der_encoded_signature, remove_padding

padded = pad_der_encoded_signature(der_sig)
assert len(padded) == 73
assert remove_padding(padded) == der_sig
```

A signature of 73 bytes or more cannot be padded. A padded value of the wrong
length, or one without a marker byte, is rejected. In both cases the function
raises `SignatureError`.

## Participants

```python
from perunckb.address import Participant, new_default_participant

participant = new_default_participant(account.address().pub_key)
encoded = participant.to_bytes()
assert Participant.from_bytes(encoded) == participant
```

`new_default_participant` uses the `secp256k1_blake160_sighash_all` lock of the
public key as both the payment script and the unlock script.

The two encodings differ in what they store:

- `Participant.pack_off_chain` (also `to_bytes`) stores the compressed key and
  both full scripts.
- `Participant.pack_on_chain` stores the compressed key and the two script
  hashes.

`Participant.to_ckb_address(network)` gives an `Address` that pays to the
payment script.

## Balancing transactions

`PerunTransactionBuilder` needs the following:

- a client with a `get_live_cell(out_point, with_data)` method that returns a
  `LiveCell` or `None`;
- a mapping from asset hash to an iterable of `TransactionInput` cells. The
  zero hash stands for plain CKByte cells, and any other key is the hash of a
  UDT type script;
- the known UDT type scripts, keyed by their hashes;
- the change `Address`;
- the cell dep of the default lock script.

The fee defaults to `DEFAULT_FEE_SHANNON`, which is one CKByte.

Add the inputs and outputs of the channel action with `add_input`,
`add_output`, `add_cell_dep` and `add_header_dep`. Then call `build()`, which
works in this order:

1. It collects a script group for every script that the outputs, the inputs and
   the change lock use.
2. It sums up what the outputs need, plus the fee, and what the inputs already
   provide.
3. For each UDT, it draws cells from that UDT's iterator until the amount is
   covered, and adds a UDT change cell for any surplus.
4. It completes the CKByte capacity from the CKB iterator, and adds or updates
   a CKB change cell.
5. It runs the registered script handlers on the groups of the output type
   scripts and of the input lock and type scripts. The built-in
   `Secp256k1Blake160SighashAllScriptHandler` reserves a 65-byte zero
   placeholder in the lock field of the witness for the first input of its
   group.
6. It checks that the CKB change cell exists and holds more than the fee.
7. It returns a `TransactionWithScriptGroups` that keeps only the script groups
   the transaction actually uses.

`build` raises `BuildError` in these cases:

- an asset has no iterator, or its iterator is empty;
- an input cannot be resolved;
- the funds fall short;
- no CKB change cell could be made.

## What this package does not do

- It does not build the channel actions themselves: opening, funding,
  disputing, closing and aborting a channel. It also does not encode channel
  states or witnesses for them. The caller supplies these as inputs, outputs
  and witnesses.
- It has no node client. Cell lookup comes from the client object that you
  pass in.
- It does not sign transactions. The lock witness holds only a zero placeholder
  of the right size.