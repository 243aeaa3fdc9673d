"""
Secure buffers - Scoped ownership of secret bytes.

Python `bytes` and `str` are immutable and cannot be wiped, so secrets in
the core live in a `bytearray` owned by a SecretBuffer. The buffer is
zero-filled when its `with` block exits (normally or by exception) or when
wipe() is called explicitly.

Usage:
    with SecretBuffer(derive_something()) as key:
        use(key.view())
    # key is zeroed here
"""

import hmac
from typing import Optional


def wipe(buffer: Optional[bytearray]) -> None:
    """Overwrite a mutable buffer with zeroes in place."""
    if buffer is None:
        return
    # Same-length slice assignment overwrites in place, no reallocation
    buffer[:] = bytes(len(buffer))


class SecretBuffer:
    """A bytearray holding secret material, zeroed on exit."""

    __slots__ = ("_data",)

    def __init__(self, data: bytes | bytearray | memoryview = b""):
        self._data = bytearray(data)
        if isinstance(data, bytearray):
            # Caller handed over a mutable buffer; take ownership and clear the source
            wipe(data)

    @classmethod
    def from_text(cls, text: str) -> "SecretBuffer":
        """Store a string as UTF-8 bytes."""
        return cls(text.encode("utf-8"))

    def view(self) -> bytearray:
        """The underlying buffer. Do not keep references past the owner's scope."""
        if self._data is None:
            raise ValueError("SecretBuffer has been wiped")
        return self._data

    def to_bytes(self) -> bytes:
        """
        Immutable copy, for APIs that insist on `bytes`.

        The copy cannot be wiped; keep its lifetime short.
        """
        return bytes(self.view())

    def to_text(self) -> str:
        """Decode as UTF-8. Same lifetime caveat as to_bytes()."""
        return self.view().decode("utf-8")

    @property
    def wiped(self) -> bool:
        return self._data is None

    def wipe(self) -> None:
        if self._data is not None:
            wipe(self._data)
            self._data = None

    def copy(self) -> "SecretBuffer":
        return SecretBuffer(bytes(self.view()))

    def __len__(self) -> int:
        return 0 if self._data is None else len(self._data)

    def __eq__(self, other) -> bool:
        if isinstance(other, SecretBuffer):
            other = other.view()
        if not isinstance(other, (bytes, bytearray)):
            return NotImplemented
        return hmac.compare_digest(bytes(self.view()), bytes(other))

    __hash__ = None

    def __repr__(self) -> str:
        state = "wiped" if self._data is None else f"{len(self._data)} bytes"
        return f"SecretBuffer(<{state}>)"

    def __enter__(self) -> "SecretBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.wipe()

    def __del__(self):
        """Attempt to clear sensitive data on destruction."""
        try:
            self.wipe()
        except AttributeError:
            pass
