"""
Password policy for keystore encryption.

Checked before any cryptographic work or file I/O.
"""

from ..errors import PasswordPolicyViolation
from .secure import SecretBuffer

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 1024

REQUIRE_LOWERCASE = "at least one lowercase letter"
REQUIRE_UPPERCASE = "at least one uppercase letter"
REQUIRE_DIGIT = "at least one digit"
REQUIRE_SYMBOL = "at least one symbol"


def _is_symbol(char: str) -> bool:
    return not char.isalnum() and not char.isspace()


def password_problems(password: str) -> list[str]:
    """List every unmet requirement (empty when the password is acceptable)."""
    problems = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f"at least {MIN_PASSWORD_LENGTH} characters")
    elif len(password) > MAX_PASSWORD_LENGTH:
        problems.append(f"at most {MAX_PASSWORD_LENGTH} characters")

    if not any(c.islower() for c in password):
        problems.append(REQUIRE_LOWERCASE)
    if not any(c.isupper() for c in password):
        problems.append(REQUIRE_UPPERCASE)
    if not any(c.isdigit() for c in password):
        problems.append(REQUIRE_DIGIT)
    if not any(_is_symbol(c) for c in password):
        problems.append(REQUIRE_SYMBOL)
    return problems


def validate_password(password: str | SecretBuffer) -> None:
    """
    Enforce the keystore password policy.

    Length 8-1024 with lowercase, uppercase, digit and symbol.

    Raises:
        PasswordPolicyViolation: `missing` lists each unmet requirement
    """
    text = password.to_text() if isinstance(password, SecretBuffer) else password
    if not isinstance(text, str):
        raise PasswordPolicyViolation(["a text password"])
    problems = password_problems(text)
    if problems:
        raise PasswordPolicyViolation(problems)
