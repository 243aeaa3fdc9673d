"""
Mnemonic engine - BIP-39 phrase generation, validation and seed derivation.

Thin wrapper over the `mnemonic` reference implementation (English
wordlist). Phrases and seeds are returned in SecretBuffers.
"""

import logging
import secrets
import unicodedata
from typing import Optional, Sequence

from mnemonic import Mnemonic

from ..errors import (
    ChecksumMismatch,
    EntropySourceError,
    InvalidWordCount,
    UnknownWord,
)
from .secure import SecretBuffer

logger = logging.getLogger(__name__)

SUPPORTED_WORD_COUNTS = (12, 24)
DEFAULT_WORD_COUNT = 12
SEED_LENGTH = 64

# 11 bits per word; 1 checksum bit per 32 bits of entropy
ENTROPY_BITS = {12: 128, 24: 256}

_mnemo = Mnemonic("english")
_wordset = frozenset(_mnemo.wordlist)


def _split_words(words: str | Sequence[str] | SecretBuffer) -> list[str]:
    if isinstance(words, SecretBuffer):
        words = words.to_text()
    if isinstance(words, str):
        words = words.split()
    return [unicodedata.normalize("NFKD", w).strip().lower() for w in words]


def generate(word_count: int = DEFAULT_WORD_COUNT) -> SecretBuffer:
    """
    Generate a fresh mnemonic phrase.

    Args:
        word_count: 12 (128-bit) or 24 (256-bit)

    Returns:
        SecretBuffer holding the space-separated phrase (UTF-8)

    Raises:
        InvalidWordCount: word_count is not 12 or 24
        EntropySourceError: the OS random source failed
    """
    if word_count not in SUPPORTED_WORD_COUNTS:
        raise InvalidWordCount(word_count)

    try:
        entropy = bytearray(secrets.token_bytes(ENTROPY_BITS[word_count] // 8))
    except (OSError, NotImplementedError) as e:
        raise EntropySourceError(f"Secure random source unavailable: {e}") from e

    with SecretBuffer(entropy) as ent:
        phrase = SecretBuffer.from_text(_mnemo.to_mnemonic(ent.view()))

    logger.debug("Generated %d-word mnemonic", word_count)
    return phrase


def validate(words: str | Sequence[str] | SecretBuffer) -> None:
    """
    Validate a mnemonic phrase.

    Raises:
        InvalidWordCount: not 12 or 24 words
        UnknownWord: a word is not in the BIP-39 English wordlist
        ChecksumMismatch: the checksum bits do not match the entropy
    """
    word_list = _split_words(words)

    if len(word_list) not in SUPPORTED_WORD_COUNTS:
        raise InvalidWordCount(len(word_list))

    for position, word in enumerate(word_list, 1):
        if word not in _wordset:
            raise UnknownWord(word, position)

    if not _mnemo.check(" ".join(word_list)):
        raise ChecksumMismatch("Mnemonic checksum does not match")


def normalize(words: str | Sequence[str] | SecretBuffer) -> SecretBuffer:
    """Validate and return the canonical single-spaced lowercase phrase."""
    validate(words)
    return SecretBuffer.from_text(" ".join(_split_words(words)))


def to_seed(mnemonic: str | SecretBuffer, passphrase: Optional[str] = None) -> SecretBuffer:
    """
    Stretch a mnemonic into the 64-byte BIP-39 seed.

    PBKDF2-HMAC-SHA512, 2048 rounds, salt "mnemonic" + passphrase.
    """
    phrase = mnemonic.to_text() if isinstance(mnemonic, SecretBuffer) else mnemonic
    return SecretBuffer(Mnemonic.to_seed(phrase, passphrase=passphrase or ""))
