"""Tests for BIP-32/44 derivation and Ethereum addresses."""

import pytest
from bip_utils import Bip32KeyError, Bip32Slip10Secp256k1
from eth_account import Account
from eth_keys import keys

from web3wallet.errors import (
    DerivationCountExceeded,
    HardenedDerivationWithoutPrivateKey,
    InvalidChildKey,
    InvalidDerivationPath,
    InvalidPathSegment,
    InvalidPrivateKeyFormat,
)
from web3wallet.wallet import mnemonic
from web3wallet.wallet.hd import (
    DEFAULT_BASE_PATH,
    HARDENED_OFFSET,
    MAX_DERIVATION_COUNT,
    MAX_INDEX,
    SECP256K1_N,
    DerivationPath,
    KeyPair,
    PathSegment,
    derive_address,
    derive_key,
    derive_range,
    master_key,
)
from web3wallet.wallet.secure import SecretBuffer

Account.enable_unaudited_hdwallet_features()

# Private key 1 -> secp256k1 generator point
KEY_ONE_ADDRESS = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


@pytest.fixture
def seed(known_mnemonic: str):
    """Seed of the known mnemonic, wiped after the test."""
    with mnemonic.to_seed(known_mnemonic) as s:
        yield s


class TestDerivationPath:
    """Tests for derivation path parsing."""

    def test_parse_default(self) -> None:
        """Test parsing the default Ethereum base path."""
        path = DerivationPath.parse(DEFAULT_BASE_PATH)
        assert path.segments == (
            PathSegment(44, True),
            PathSegment(60, True),
            PathSegment(0, True),
            PathSegment(0, False),
        )
        assert str(path) == DEFAULT_BASE_PATH
        assert path.is_ethereum_bip44()

    def test_parse_h_notation_and_whitespace(self) -> None:
        """Test that h/H hardened markers and spaces are accepted."""
        path = DerivationPath.parse(" m / 44h / 60H / 0' / 0 / 7 ")
        assert str(path) == "m/44'/60'/0'/0/7"

    def test_master_path(self) -> None:
        """Test that 'm' is the empty path."""
        assert DerivationPath.parse("m").depth == 0

    def test_segment_value(self) -> None:
        """Test that hardened segments carry the hardened offset."""
        assert PathSegment(44, True).value == 44 + HARDENED_OFFSET
        assert PathSegment(5, False).value == 5

    def test_bip44_builder(self) -> None:
        """Test building m/44'/60'/account'/change/index."""
        assert str(DerivationPath.bip44(1, 0, 3)) == "m/44'/60'/1'/0/3"

    def test_non_ethereum_path(self) -> None:
        """Test detection of a non-Ethereum coin type."""
        assert not DerivationPath.parse("m/44'/0'/0'/0").is_ethereum_bip44()

    @pytest.mark.parametrize("text", ["", "44'/60'", "m/abc", "m/1''", "m//1", "n/0", "m/-1"])
    def test_invalid_syntax(self, text: str) -> None:
        """Test that malformed paths raise InvalidDerivationPath."""
        with pytest.raises(InvalidDerivationPath):
            DerivationPath.parse(text)

    @pytest.mark.parametrize("text", ["m/2147483648", "m/2147483648'", "m/4294967296'"])
    def test_index_out_of_range(self, text: str) -> None:
        """Test that indices at or above 2^31 raise InvalidPathSegment."""
        with pytest.raises(InvalidPathSegment):
            DerivationPath.parse(text)

    def test_max_index_allowed(self) -> None:
        """Test that 2^31-1 is accepted in both notations."""
        path = DerivationPath.parse(f"m/{MAX_INDEX}/{MAX_INDEX}'")
        assert path.segments[1].value == 2 ** 32 - 1

    def test_child_out_of_range(self) -> None:
        """Test that appending an out-of-range index fails."""
        with pytest.raises(InvalidPathSegment):
            DerivationPath.parse(DEFAULT_BASE_PATH).child(MAX_INDEX + 1)


class TestAddress:
    """Tests for address computation."""

    def test_key_one(self) -> None:
        """Test the address of private key 1."""
        with KeyPair.from_private_key((1).to_bytes(32, "big")) as kp:
            assert kp.address == KEY_ONE_ADDRESS

    def test_accepts_prefixed_public_key(self) -> None:
        """Test that a 65-byte 0x04-prefixed public key gives the same address."""
        public = keys.PrivateKey((1).to_bytes(32, "big")).public_key.to_bytes()
        assert derive_address(public) == KEY_ONE_ADDRESS
        assert derive_address(b"\x04" + public) == KEY_ONE_ADDRESS

    def test_rejects_bad_public_key_length(self) -> None:
        """Test that a 33-byte key is rejected."""
        with pytest.raises(ValueError):
            derive_address(b"\x02" * 33)

    def test_matches_eth_account(self) -> None:
        """Test EIP-55 output against eth_account."""
        key = bytes(range(1, 33))
        with KeyPair.from_private_key(key) as kp:
            assert kp.address == Account.from_key(key).address


class TestKeyPair:
    """Tests for KeyPair construction and wiping."""

    @pytest.mark.parametrize("value", [0, SECP256K1_N, SECP256K1_N + 1])
    def test_out_of_range_key(self, value: int) -> None:
        """Test that keys outside 1..n-1 are rejected."""
        with pytest.raises(InvalidPrivateKeyFormat):
            KeyPair.from_private_key(value.to_bytes(32, "big"))

    def test_wrong_length(self) -> None:
        """Test that a 31-byte key is rejected."""
        with pytest.raises(InvalidPrivateKeyFormat):
            KeyPair.from_private_key(b"\x01" * 31)

    def test_wiped_after_context(self) -> None:
        """Test that the private key is wiped when the block exits."""
        with KeyPair.from_private_key(b"\x01" * 32) as kp:
            assert kp.private_key_hex() == "0x" + "01" * 32
        assert kp.private_key.wiped
        # The public address stays usable
        assert kp.address.startswith("0x")

    def test_takes_copy_of_secret_buffer(self) -> None:
        """Test that the caller's SecretBuffer is left intact."""
        with SecretBuffer(b"\x01" * 32) as raw:
            with KeyPair.from_private_key(raw):
                pass
            assert raw.view() == bytearray(b"\x01" * 32)


class TestDeriveKey:
    """Tests for single-path derivation."""

    def test_metamask_vector(self, seed: SecretBuffer, known_address: str) -> None:
        """Test the MetaMask address at m/44'/60'/0'/0/0."""
        with derive_key(seed, "m/44'/60'/0'/0/0") as kp:
            assert kp.address == known_address

    @pytest.mark.parametrize("index", [0, 1, 2, 19])
    def test_matches_eth_account(self, seed: SecretBuffer, known_mnemonic: str, index: int) -> None:
        """Test derivation against eth_account's HD implementation."""
        path = f"m/44'/60'/0'/0/{index}"
        expected = Account.from_mnemonic(known_mnemonic, account_path=path)
        with derive_key(seed, path) as kp:
            assert kp.address == expected.address
            assert kp.private_key.view() == bytearray(expected.key)

    def test_deterministic(self, seed: SecretBuffer) -> None:
        """Test that derivation is repeatable."""
        with derive_key(seed, "m/44'/60'/0'/0/5") as a, derive_key(seed, "m/44'/60'/0'/0/5") as b:
            assert a.address == b.address
            assert a.private_key == b.private_key

    def test_accepts_raw_bytes(self, seed: SecretBuffer, known_address: str) -> None:
        """Test that a plain bytes seed is accepted."""
        with derive_key(seed.to_bytes(), "m/44'/60'/0'/0/0") as kp:
            assert kp.address == known_address


class TestExtendedKey:
    """Tests for private and public-only child derivation."""

    def test_public_derivation_matches_private(self, seed: SecretBuffer) -> None:
        """Test that a neutered parent derives the same non-hardened child addresses."""
        with master_key(seed) as root, root.derive_path(DEFAULT_BASE_PATH) as parent:
            public_parent = parent.neuter()
            assert not public_parent.has_private_key
            for index in (0, 1, 7):
                with parent.child(index) as private_child, public_parent.child(index) as public_child:
                    assert public_child.address == private_child.address
                    assert public_child.public_key == private_child.public_key

    def test_hardened_from_public_key(self, seed: SecretBuffer) -> None:
        """Test that hardened derivation needs the private key."""
        with master_key(seed) as root:
            public_root = root.neuter()
            with pytest.raises(HardenedDerivationWithoutPrivateKey):
                public_root.child(HARDENED_OFFSET)

    def test_derive_path_leaves_parent_intact(self, seed: SecretBuffer) -> None:
        """Test that walking a path does not wipe the starting key."""
        with master_key(seed) as root:
            with root.derive_path("m/44'/60'"):
                pass
            assert root.has_private_key

    def test_wipe(self, seed: SecretBuffer) -> None:
        """Test that a wiped key cannot derive further."""
        root = master_key(seed)
        root.wipe()
        assert root.wiped
        assert not root.has_private_key
        with pytest.raises(ValueError, match="wiped"):
            root.child(0)

    def test_copy_is_independent(self, seed: SecretBuffer) -> None:
        """Test that wiping a copy leaves the original usable."""
        with master_key(seed) as root:
            clone = root.copy()
            clone.wipe()
            assert root.has_private_key
            assert root.depth == 0

    def test_child_key_error_mapped(self, seed: SecretBuffer, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an invalid BIP-32 child surfaces as InvalidChildKey."""
        def invalid_child(self, index):
            raise Bip32KeyError("Computed child key is not valid")

        monkeypatch.setattr(Bip32Slip10Secp256k1, "ChildKey", invalid_child)
        with master_key(seed) as root:
            with pytest.raises(InvalidChildKey) as exc_info:
                root.child(0)
        assert exc_info.value.kind == "DerivationLimit"

    def test_child_metadata(self, seed: SecretBuffer) -> None:
        """Test depth and index of a hardened child."""
        with master_key(seed) as root, root.child(HARDENED_OFFSET + 44) as node:
            assert node.depth == 1
            assert node.index == HARDENED_OFFSET + 44
            assert len(node.public_key) == 33


class TestDeriveRange:
    """Tests for batch derivation."""

    def test_indices_and_paths(self, seed: SecretBuffer, known_address: str) -> None:
        """Test that entries are indexed from start_index."""
        results = derive_range(seed, DEFAULT_BASE_PATH, 0, 3)
        try:
            assert [r.index for r in results] == [0, 1, 2]
            assert results[0].address == known_address
            assert results[0].keypair.address == known_address
        finally:
            for r in results:
                r.keypair.wipe()

    def test_restartable(self, seed: SecretBuffer) -> None:
        """Test that a later start reproduces the tail of an earlier batch."""
        full = derive_range(seed, DEFAULT_BASE_PATH, 0, 8)
        tail = derive_range(seed, DEFAULT_BASE_PATH, 3, 5)
        assert [r.address for r in tail] == [r.address for r in full[3:]]
        for r in full + tail:
            r.keypair.wipe()

    @pytest.mark.parametrize("count", [0, -1, MAX_DERIVATION_COUNT + 1])
    def test_count_bounds(self, seed: SecretBuffer, count: int) -> None:
        """Test that count must be between 1 and 10,000."""
        with pytest.raises(DerivationCountExceeded):
            derive_range(seed, DEFAULT_BASE_PATH, 0, count)

    def test_last_index_bound(self, seed: SecretBuffer) -> None:
        """Test that the last index must stay below 2^31."""
        with pytest.raises(InvalidPathSegment):
            derive_range(seed, DEFAULT_BASE_PATH, MAX_INDEX, 2)

    def test_negative_start(self, seed: SecretBuffer) -> None:
        """Test that a negative start index is rejected."""
        with pytest.raises(InvalidPathSegment):
            derive_range(seed, DEFAULT_BASE_PATH, -1, 1)

    def test_custom_base_path(self, seed: SecretBuffer, known_mnemonic: str) -> None:
        """Test derivation under a non-default account."""
        results = derive_range(seed, "m/44'/60'/1'/0", 2, 1)
        expected = Account.from_mnemonic(known_mnemonic, account_path="m/44'/60'/1'/0/2")
        assert results[0].address == expected.address
        results[0].keypair.wipe()

