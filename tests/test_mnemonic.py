"""Tests for the BIP-39 mnemonic engine."""

import secrets

import pytest

from web3wallet.errors import (
    ChecksumMismatch,
    EntropySourceError,
    InvalidWordCount,
    MnemonicError,
    UnknownWord,
)
from web3wallet.wallet import mnemonic
from web3wallet.wallet.secure import SecretBuffer

# BIP-39 reference vectors for the all-zero-entropy 12-word phrase
SEED_NO_PASSPHRASE = (
    "5eb00bbddcf069084889a8ab9155568165f5c453ccb85e70811aaed6f6da5fc1"
    "9a5ac40b389cd370d086206dec8aa6c43daea6690f20ad3d8d48b2d2ce9e38e4"
)
SEED_TREZOR = (
    "c55257c360c07c72029aebc1b53c05ed0362ada38ead3e3e9efa3708e5349553"
    "1f09a6987599d18264c1e1c92f2cf141630c7a3c4ab7c81b2f001698e7463b04"
)


class TestGenerate:
    """Tests for mnemonic generation."""

    @pytest.mark.parametrize("word_count", [12, 24])
    def test_generates_valid_phrase(self, word_count: int) -> None:
        """Test that generated phrases have the right length and checksum."""
        with mnemonic.generate(word_count) as phrase:
            words = phrase.to_text().split()
            assert len(words) == word_count
            mnemonic.validate(words)

    def test_returns_secret_buffer(self) -> None:
        """Test that the phrase is held in a wipeable buffer."""
        phrase = mnemonic.generate()
        assert isinstance(phrase, SecretBuffer)
        phrase.wipe()
        assert phrase.wiped

    def test_phrases_differ(self) -> None:
        """Test that two generated phrases are different."""
        with mnemonic.generate() as a, mnemonic.generate() as b:
            assert a.to_text() != b.to_text()

    @pytest.mark.parametrize("word_count", [0, 11, 15, 18, 25])
    def test_rejects_unsupported_word_count(self, word_count: int) -> None:
        """Test that only 12 and 24 words are supported."""
        with pytest.raises(InvalidWordCount) as exc_info:
            mnemonic.generate(word_count)
        assert exc_info.value.count == word_count

    def test_entropy_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a failing random source raises EntropySourceError."""
        def broken(size: int) -> bytes:
            raise OSError("no entropy")

        monkeypatch.setattr(secrets, "token_bytes", broken)
        with pytest.raises(EntropySourceError):
            mnemonic.generate(12)


class TestValidate:
    """Tests for mnemonic validation."""

    def test_valid_phrase(self, known_mnemonic: str) -> None:
        """Test that the reference phrase validates."""
        mnemonic.validate(known_mnemonic)

    def test_normalizes_case_and_whitespace(self, known_mnemonic: str) -> None:
        """Test that case and extra whitespace are ignored."""
        messy = "  " + "   ".join(known_mnemonic.upper().split()) + "\n"
        mnemonic.validate(messy)
        with mnemonic.normalize(messy) as clean:
            assert clean.to_text() == known_mnemonic

    def test_accepts_word_list(self, known_mnemonic: str) -> None:
        """Test that a list of words is accepted."""
        mnemonic.validate(known_mnemonic.split())

    def test_wrong_word_count(self, known_mnemonic: str) -> None:
        """Test rejection of an 11-word phrase."""
        with pytest.raises(InvalidWordCount):
            mnemonic.validate(known_mnemonic.split()[:11])

    def test_unknown_word_reports_position(self, known_mnemonic: str) -> None:
        """Test that the offending word and its 1-based position are reported."""
        words = known_mnemonic.split()
        words[2] = "notaword"
        with pytest.raises(UnknownWord) as exc_info:
            mnemonic.validate(words)
        assert exc_info.value.word == "notaword"
        assert exc_info.value.position == 3

    def test_checksum_mismatch(self) -> None:
        """Test that a phrase with a bad checksum is rejected."""
        with pytest.raises(ChecksumMismatch):
            mnemonic.validate(" ".join(["abandon"] * 12))

    def test_errors_share_base_class(self) -> None:
        """Test that all mnemonic errors are MnemonicError and ValueError."""
        with pytest.raises(MnemonicError):
            mnemonic.validate("abandon")
        with pytest.raises(ValueError):
            mnemonic.validate("abandon")


class TestToSeed:
    """Tests for seed derivation."""

    def test_reference_seed(self, known_mnemonic: str) -> None:
        """Test the seed of the reference phrase without passphrase."""
        with mnemonic.to_seed(known_mnemonic) as seed:
            assert len(seed) == mnemonic.SEED_LENGTH
            assert seed.view().hex() == SEED_NO_PASSPHRASE

    def test_reference_seed_with_passphrase(self, known_mnemonic: str) -> None:
        """Test the seed of the reference phrase with passphrase TREZOR."""
        with mnemonic.to_seed(known_mnemonic, "TREZOR") as seed:
            assert seed.view().hex() == SEED_TREZOR

    def test_deterministic(self, known_mnemonic: str) -> None:
        """Test that the same inputs give the same seed."""
        with mnemonic.to_seed(known_mnemonic, "x") as a, mnemonic.to_seed(known_mnemonic, "x") as b:
            assert a == b

    def test_accepts_secret_buffer(self, known_mnemonic: str) -> None:
        """Test that a SecretBuffer phrase gives the same seed as a string."""
        with SecretBuffer.from_text(known_mnemonic) as phrase, mnemonic.to_seed(phrase) as seed:
            assert seed.view().hex() == SEED_NO_PASSPHRASE
