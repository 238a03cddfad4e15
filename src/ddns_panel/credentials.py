"""
Credential validation and hashing.

Passwords are checked against an entropy-based strength policy whose
threshold depends on whether the panel is reachable from outside private
networks, then stored as bcrypt hashes.
"""

from __future__ import annotations

import hashlib
import logging
import math
import re
import string
from typing import TYPE_CHECKING

import bcrypt

from ddns_panel.errors import WeakPasswordError

if TYPE_CHECKING:
    from typing import Final


# Character pools used by the entropy estimate
REPLACE_CHARS: Final[str] = "!@$&*"
SEPARATOR_CHARS: Final[str] = "_-., "
OTHER_SPECIAL_CHARS: Final[str] = "\"#%'()+/:;<=>?[\\]^{|}~"

DEFAULT_MIN_ENTROPY_WAN: Final[float] = 30.0
DEFAULT_MIN_ENTROPY_LAN: Final[float] = 25.0

# Runs of the same character longer than this only count up to this length
_MAX_REPEAT: Final[int] = 2
_REPEAT_PATTERN: Final[re.Pattern[str]] = re.compile(r"(.)\1{%d,}" % _MAX_REPEAT)

# Runs following one of these sequences also count up to _MAX_REPEAT
_SEQUENCES: Final[tuple[str, ...]] = (
    string.digits,
    "qwertyuiop",
    "asdfghjkl",
    "zxcvbnm",
    string.ascii_lowercase,
)

_POOLS: Final[tuple[str, ...]] = (
    REPLACE_CHARS,
    SEPARATOR_CHARS,
    OTHER_SPECIAL_CHARS,
    string.ascii_lowercase,
    string.ascii_uppercase,
    string.digits,
)


logger = logging.getLogger(__name__)


def _pool_size(password: str) -> int:
    """Size of the character pool the password draws from."""
    known = "".join(_POOLS)
    size = sum(len(chars) for chars in _POOLS if any(c in chars for c in password))
    # Every distinct character outside the known pools widens the pool by one
    size += len({c for c in password if c not in known})
    return size


def _collapse_sequence(password: str, sequence: str) -> str:
    """Drop characters past the second of every run that steps along ``sequence``."""
    kept: list[str] = []
    run = 0
    previous = ""
    for char in password:
        current = char.lower()
        if (
            previous
            and previous in sequence
            and current in sequence
            and sequence.index(current) == sequence.index(previous) + 1
        ):
            run += 1
        else:
            run = 1
        if run <= _MAX_REPEAT:
            kept.append(char)
        previous = current
    return "".join(kept)


def password_entropy(password: str) -> float:
    """
    Estimate the entropy of a password in bits.

    The estimate is ``log2(pool size) * effective length``. Runs of a
    repeated character longer than two count as two, as do runs stepping
    along the digits, the alphabet or a keyboard row (``"12345"``,
    ``"qwerty"``).

    Parameters
    ----------
    password : str
        Candidate password.

    Returns
    -------
    float
        Estimated entropy in bits (``0.0`` for an empty password).
    """
    if not password:
        return 0.0
    collapsed = _REPEAT_PATTERN.sub(lambda m: m.group(1) * _MAX_REPEAT, password)
    for sequence in _SEQUENCES:
        collapsed = _collapse_sequence(collapsed, sequence)
    base = _pool_size(password)
    if base < 2:  # noqa: PLR2004
        return 0.0
    return math.log2(base) * len(collapsed)


def _prehash(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes of its input
    return hashlib.sha256(password.encode("utf-8")).hexdigest().encode("ascii")


def hash_password(password: str) -> str:
    """
    Hash a password with bcrypt.

    Parameters
    ----------
    password : str
        Raw password.

    Returns
    -------
    str
        bcrypt hash string.
    """
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt()).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Check a password against a stored bcrypt hash.

    Parameters
    ----------
    password : str
        Candidate password.
    password_hash : str
        Stored hash.

    Returns
    -------
    bool
        True if the password matches. Malformed hashes never match.
    """
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_prehash(password), password_hash.encode("ascii"))
    except ValueError:
        logger.warning("Stored password hash is malformed.")
        return False


class PasswordPolicy:
    """
    Password strength policy.

    Parameters
    ----------
    min_entropy_wan : float, optional
        Minimum entropy (bits) when WAN access is allowed.
    min_entropy_lan : float, optional
        Minimum entropy (bits) when only private networks may connect.
    """

    def __init__(
        self,
        min_entropy_wan: float = DEFAULT_MIN_ENTROPY_WAN,
        min_entropy_lan: float = DEFAULT_MIN_ENTROPY_LAN,
    ) -> None:
        self.min_entropy_wan = min_entropy_wan
        self.min_entropy_lan = min_entropy_lan

    def required_entropy(self, *, wan_access_allowed: bool) -> float:
        """Minimum entropy for the given network exposure."""
        return self.min_entropy_wan if wan_access_allowed else self.min_entropy_lan

    def hash_password(self, password: str, *, wan_access_allowed: bool) -> str:
        """
        Validate a new password and return its hash.

        Parameters
        ----------
        password : str
            New raw password (non-empty).
        wan_access_allowed : bool
            Whether the panel accepts clients outside private networks.

        Returns
        -------
        str
            bcrypt hash of the password.

        Raises
        ------
        WeakPasswordError
            If the password entropy is below the required minimum.
        """
        required = self.required_entropy(wan_access_allowed=wan_access_allowed)
        entropy = password_entropy(password)
        if entropy < required:
            logger.info(
                "Rejected weak password (%.1f bits, %.1f required).",
                entropy,
                required,
            )
            raise WeakPasswordError
        return hash_password(password)
