"""
HD derivation - BIP-32 child key derivation and Ethereum addresses.

Walks BIP-32/44 paths from a BIP-39 seed:
- Master key and CKD (private and public-only) via bip_utils
- Keccak-256 address with EIP-55 checksum casing (MetaMask compatible)

Leaf private keys are handed out in SecretBuffers; intermediate extended
keys are dropped as soon as their child has been computed.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, NamedTuple, Optional

from bip_utils import Bip32KeyError, Bip32Slip10Secp256k1
from eth_keys import keys
from eth_keys.constants import SECPK1_N as SECP256K1_N
from eth_utils import ValidationError, keccak, to_checksum_address

from ..errors import (
    DerivationCountExceeded,
    HardenedDerivationWithoutPrivateKey,
    InvalidChildKey,
    InvalidDerivationPath,
    InvalidPathSegment,
    InvalidPrivateKeyFormat,
)
from .secure import SecretBuffer

logger = logging.getLogger(__name__)


# ============================================
# Constants
# ============================================

HARDENED_OFFSET = 0x80000000
MAX_INDEX = HARDENED_OFFSET - 1
MAX_DERIVATION_COUNT = 10_000

BIP44_PURPOSE = 44
ETH_COIN_TYPE = 60

# Base path; the address index is appended as the fifth segment
DEFAULT_BASE_PATH = "m/44'/60'/0'/0"

_SEGMENT_RE = re.compile(r"^(\d+)(['hH]?)$")


# ============================================
# Derivation Paths
# ============================================

@dataclass(frozen=True)
class PathSegment:
    """One level of a derivation path."""
    index: int       # 0 .. 2^31-1, without the hardened bit
    hardened: bool

    @property
    def value(self) -> int:
        """Index as used in CKD (hardened bit set when hardened)."""
        return self.index + HARDENED_OFFSET if self.hardened else self.index

    def __str__(self) -> str:
        return f"{self.index}'" if self.hardened else str(self.index)


@dataclass(frozen=True)
class DerivationPath:
    """A parsed BIP-32 path, e.g. m/44'/60'/0'/0/0."""
    segments: tuple[PathSegment, ...] = ()

    @classmethod
    def parse(cls, text: "str | DerivationPath") -> "DerivationPath":
        """
        Parse `m / <index>['] / ...`.

        Raises:
            InvalidDerivationPath: malformed syntax
            InvalidPathSegment: an index outside 0 .. 2^31-1
        """
        if isinstance(text, DerivationPath):
            return text
        if not isinstance(text, str):
            raise InvalidDerivationPath(f"Derivation path must be a string, got {type(text).__name__}")

        parts = [p.strip() for p in text.strip().split("/")]
        if not parts or parts[0] != "m":
            raise InvalidDerivationPath(f"Derivation path must start with 'm/': {text!r}")
        if len(parts) == 2 and parts[1] == "":
            # "m/" is the master key
            parts = ["m"]

        segments = []
        for part in parts[1:]:
            match = _SEGMENT_RE.match(part)
            if not match:
                raise InvalidDerivationPath(
                    f"Invalid path component {part!r} in {text!r}; expected <number> or <number>'"
                )
            index = int(match.group(1))
            hardened = bool(match.group(2))
            if index > MAX_INDEX:
                raise InvalidPathSegment(
                    f"Path component {part!r} out of range (0 .. {MAX_INDEX})"
                )
            segments.append(PathSegment(index, hardened))

        return cls(tuple(segments))

    @classmethod
    def bip44(cls, account: int = 0, change: int = 0,
              address_index: Optional[int] = None) -> "DerivationPath":
        """Ethereum BIP-44 path m/44'/60'/account'/change[/address_index]."""
        path = cls((
            PathSegment(BIP44_PURPOSE, True),
            PathSegment(ETH_COIN_TYPE, True),
        ))
        path = path.child(account, hardened=True).child(change)
        if address_index is not None:
            path = path.child(address_index)
        return path

    def child(self, index: int, hardened: bool = False) -> "DerivationPath":
        if not 0 <= index <= MAX_INDEX:
            raise InvalidPathSegment(f"Index {index} out of range (0 .. {MAX_INDEX})")
        return DerivationPath(self.segments + (PathSegment(index, hardened),))

    @property
    def depth(self) -> int:
        return len(self.segments)

    def is_ethereum_bip44(self) -> bool:
        """True for m/44'/60'/... paths (what MetaMask derives)."""
        return (
            len(self.segments) >= 2
            and self.segments[0] == PathSegment(BIP44_PURPOSE, True)
            and self.segments[1] == PathSegment(ETH_COIN_TYPE, True)
        )

    def __str__(self) -> str:
        return "/".join(["m"] + [str(s) for s in self.segments])


# ============================================
# Keys and Addresses
# ============================================

def derive_address(public_key: bytes) -> str:
    """
    Compute the EIP-55 checksummed address of a public key.

    Args:
        public_key: 64-byte uncompressed key (x || y); a 65-byte key with
            the 0x04 prefix is also accepted

    Returns:
        0x-prefixed mixed-case address
    """
    public_key = bytes(public_key)
    if len(public_key) == 65 and public_key[0] == 0x04:
        public_key = public_key[1:]
    if len(public_key) != 64:
        raise ValueError(f"Public key must be 64 bytes, got {len(public_key)}")
    return to_checksum_address(keccak(public_key)[-20:])




class KeyPair:
    """
    A secp256k1 key pair and its address.

    The private key is wiped by wipe() or on leaving a `with` block.
    """

    def __init__(self, private_key: SecretBuffer, public_key: bytes):
        self.private_key = private_key
        self.public_key = bytes(public_key)
        self.address = derive_address(self.public_key)

    @classmethod
    def from_private_key(cls, private_key: bytes | bytearray | SecretBuffer) -> "KeyPair":
        """
        Build a key pair from 32 raw private key bytes.

        Raises:
            InvalidPrivateKeyFormat: wrong length or outside 1 .. n-1
        """
        secret = private_key.copy() if isinstance(private_key, SecretBuffer) else SecretBuffer(private_key)
        try:
            if len(secret) != 32:
                raise InvalidPrivateKeyFormat(
                    f"Private key must be 32 bytes (64 hex characters), got {len(secret)} bytes"
                )
            if not 0 < int.from_bytes(secret.view(), "big") < SECP256K1_N:
                raise InvalidPrivateKeyFormat("Private key is outside the secp256k1 range")
            public_key = keys.PrivateKey(secret.to_bytes()).public_key.to_bytes()
        except ValidationError as e:
            secret.wipe()
            raise InvalidPrivateKeyFormat("Private key is outside the secp256k1 range") from e
        except BaseException:
            secret.wipe()
            raise
        return cls(secret, public_key)

    def private_key_hex(self) -> str:
        """0x-prefixed hex of the private key. Handle with extreme care!"""
        return "0x" + self.private_key.view().hex()

    def wipe(self) -> None:
        self.private_key.wipe()

    def __enter__(self) -> "KeyPair":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return f"KeyPair(address={self.address})"


class ExtendedKey:
    """
    BIP-32 extended key (a bip_utils secp256k1 context).

    Public-only keys can derive non-hardened children. wipe() drops the
    context; key material inside bip_utils is immutable and is released
    to the garbage collector rather than zeroed.
    """

    def __init__(self, node: Bip32Slip10Secp256k1):
        self._node: Optional[Bip32Slip10Secp256k1] = node

    def _require(self) -> Bip32Slip10Secp256k1:
        if self._node is None:
            raise ValueError("Extended key has been wiped")
        return self._node

    @property
    def wiped(self) -> bool:
        return self._node is None

    @property
    def has_private_key(self) -> bool:
        return self._node is not None and not self._node.IsPublicOnly()

    @property
    def public_key(self) -> bytes:
        """33-byte compressed public key."""
        return self._require().PublicKey().RawCompressed().ToBytes()

    @property
    def depth(self) -> int:
        return self._require().Depth().ToInt()

    @property
    def index(self) -> int:
        return self._require().Index().ToInt()

    def child(self, index: int) -> "ExtendedKey":
        """
        Derive child `index` (hardened when index >= 2^31).

        Raises:
            HardenedDerivationWithoutPrivateKey: hardened index on a public-only key
            InvalidChildKey: the child key is invalid (IL >= n, zero or infinity)
        """
        if not 0 <= index < 2 ** 32:
            raise InvalidPathSegment(f"Child index {index} out of range")
        node = self._require()
        if index >= HARDENED_OFFSET and node.IsPublicOnly():
            raise HardenedDerivationWithoutPrivateKey(
                f"Cannot derive hardened child {index - HARDENED_OFFSET}' from a public key"
            )
        try:
            return ExtendedKey(node.ChildKey(index))
        except Bip32KeyError as e:
            raise InvalidChildKey(f"Invalid child key at index {index}") from e

    def derive_path(self, path: "str | DerivationPath") -> "ExtendedKey":
        """
        Walk a path relative to this key, wiping intermediates.

        The returned key is a new object; self is left untouched.
        """
        path = DerivationPath.parse(path)
        current = self
        for segment in path.segments:
            nxt = current.child(segment.value)
            if current is not self:
                current.wipe()
            current = nxt
        if current is self:
            return self.copy()
        return current

    def neuter(self) -> "ExtendedKey":
        """Public-only copy of this key."""
        xpub = self._require().PublicKey().ToExtended()
        return ExtendedKey(Bip32Slip10Secp256k1.FromExtendedKey(xpub))

    def copy(self) -> "ExtendedKey":
        if not self.has_private_key:
            return self.neuter()
        xprv = self._require().PrivateKey().ToExtended()
        return ExtendedKey(Bip32Slip10Secp256k1.FromExtendedKey(xprv))

    def to_keypair(self) -> KeyPair:
        """Key pair for this node (requires the private key)."""
        if not self.has_private_key:
            raise HardenedDerivationWithoutPrivateKey("Extended key has no private key")
        with SecretBuffer(self._node.PrivateKey().Raw().ToBytes()) as raw:
            return KeyPair.from_private_key(raw)

    @property
    def address(self) -> str:
        """Address of this node; works for public-only keys."""
        uncompressed = keys.PublicKey.from_compressed_bytes(self.public_key).to_bytes()
        return derive_address(uncompressed)

    def wipe(self) -> None:
        self._node = None

    def __enter__(self) -> "ExtendedKey":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()


# ============================================
# Derivation
# ============================================

def master_key(seed: bytes | bytearray | SecretBuffer) -> ExtendedKey:
    """
    BIP-32 master extended key from a seed.

    Raises:
        InvalidChildKey: the seed yields an invalid master key
    """
    raw = seed.to_bytes() if isinstance(seed, SecretBuffer) else bytes(seed)
    try:
        return ExtendedKey(Bip32Slip10Secp256k1.FromSeed(raw))
    except Bip32KeyError as e:
        raise InvalidChildKey("Seed produces an invalid master key") from e


def derive_key(seed: bytes | bytearray | SecretBuffer, path: "str | DerivationPath") -> KeyPair:
    """
    Derive the key pair at `path` from a BIP-39 seed.

    Example:
        with derive_key(seed, "m/44'/60'/0'/0/0") as kp:
            print(kp.address)
    """
    path = DerivationPath.parse(path)
    with master_key(seed) as root, root.derive_path(path) as node:
        return node.to_keypair()


class DerivedKey(NamedTuple):
    """One entry of a batch derivation."""
    index: int
    address: str
    keypair: KeyPair


def check_range(start_index: int, count: int) -> None:
    """Validate a batch derivation request before any key material is touched."""
    if not 1 <= count <= MAX_DERIVATION_COUNT:
        raise DerivationCountExceeded(
            f"Count must be between 1 and {MAX_DERIVATION_COUNT}, got {count}"
        )
    if start_index < 0 or start_index + count - 1 > MAX_INDEX:
        raise InvalidPathSegment(
            f"Address indices {start_index}..{start_index + count - 1} out of range (0 .. {MAX_INDEX})"
        )


def iter_range(parent: ExtendedKey, start_index: int, count: int) -> Iterable[DerivedKey]:
    """Yield non-hardened children start_index .. start_index+count-1 of `parent`."""
    check_range(start_index, count)
    for index in range(start_index, start_index + count):
        with parent.child(index) as node:
            keypair = node.to_keypair()
        yield DerivedKey(index, keypair.address, keypair)


def derive_range(seed: bytes | bytearray | SecretBuffer,
                 base_path: "str | DerivationPath",
                 start_index: int, count: int) -> list[DerivedKey]:
    """
    Batch-derive `count` consecutive addresses under `base_path`.

    The index is appended to base_path, so with the default base
    m/44'/60'/0'/0 entry i is m/44'/60'/0'/0/i. The result is fully
    determined by the arguments: calling again with start_index + k
    reproduces the tail of this list.

    Raises:
        DerivationCountExceeded: count outside 1 .. 10,000
        InvalidPathSegment: an index would leave the non-hardened range
    """
    base = DerivationPath.parse(base_path)
    check_range(start_index, count)
    results: list[DerivedKey] = []
    try:
        with master_key(seed) as root, root.derive_path(base) as parent:
            results.extend(iter_range(parent, start_index, count))
    except BaseException:
        for derived in results:
            derived.keypair.wipe()
        raise
    return results
