"""
Password generation for Roost.

Used by the new/edit password prompt: typing "g" (or "g<N>") generates a
random password, "w" a word-based one.

SECURITY NOTES:
- All randomness comes from the secrets module
- Generated passwords always mix character classes when the length allows
"""

import re
import secrets
import string
from typing import Optional

from . import config
from .errors import RoostError

_GENERATE_REQUEST = re.compile(r"^g(\d*)$")

# ==============================================================================
# CUSTOM EXCEPTION CLASSES
# ==============================================================================

class PasswordGenerationError(RoostError):
    """
    Raised when password generation parameters cannot be satisfied.
    """
    pass

# ==============================================================================
# MAIN PASSWORD GENERATION FUNCTIONS
# ==============================================================================

def generate_secure_password(length: int = config.DEFAULT_PASSWORD_LENGTH,
                             include_symbols: bool = True,
                             exclude_similar: bool = True) -> str:
    """
    Generate a cryptographically secure random password.

    Args:
        length (int): Desired length, between MIN_GENERATED_LENGTH and
            MAX_GENERATED_LENGTH
        include_symbols (bool): Include punctuation. Default: True
        exclude_similar (bool): Leave out I, O, i, l, o, 0 and 1. Default: True

    Returns:
        str: Password with at least one character from every pool, as far as
            the length allows

    Raises:
        PasswordGenerationError: length out of range
    """
    if not config.MIN_GENERATED_LENGTH <= length <= config.MAX_GENERATED_LENGTH:
        raise PasswordGenerationError(
            f"Password length must be between {config.MIN_GENERATED_LENGTH} "
            f"and {config.MAX_GENERATED_LENGTH}"
        )

    upper = string.ascii_uppercase
    lower = string.ascii_lowercase
    digits = string.digits
    if exclude_similar:
        upper = upper.replace('I', '').replace('O', '')
        lower = lower.replace('i', '').replace('l', '').replace('o', '')
        digits = digits.replace('0', '').replace('1', '')

    pools = [upper, lower, digits]
    if include_symbols:
        pools.append(string.punctuation)

    rng = secrets.SystemRandom()

    # One from each pool first, then fill from the union
    password_chars = [secrets.choice(pool) for pool in rng.sample(pools, min(length, len(pools)))]
    all_chars = ''.join(pools)
    password_chars.extend(secrets.choice(all_chars) for _ in range(length - len(password_chars)))

    rng.shuffle(password_chars)
    return ''.join(password_chars)


def generate_memorable_password(word_count: int = 4, separator: str = '-') -> str:
    """
    Generate a word-based password, e.g. "Cloud-Owl-River-Jewel42".
    """
    word_list = [
        'apple', 'bird', 'cat', 'dog', 'elephant', 'fish', 'goat', 'horse',
        'ice', 'jacket', 'kite', 'lion', 'mouse', 'nest', 'owl', 'pig',
        'queen', 'rabbit', 'snake', 'tiger', 'umbrella', 'violin', 'whale',
        'xray', 'yacht', 'zebra', 'anchor', 'brick', 'cloud', 'dragon',
        'earth', 'flame', 'globe', 'heart', 'island', 'jewel', 'king',
        'lemon', 'moon', 'night', 'ocean', 'planet', 'quilt', 'river',
        'star', 'tree', 'unicorn', 'violet', 'water', 'yellow'
    ]
    words = [secrets.choice(word_list).capitalize() for _ in range(word_count)]
    return separator.join(words) + str(secrets.randbelow(100)).zfill(2)


def password_from_request(text: str) -> Optional[str]:
    """
    Interpret a password prompt reply as a generation request.

    Returns:
        Optional[str]: Generated password for "g", "g<N>" or "w";
            None when text is an ordinary password

    Raises:
        PasswordGenerationError: "g<N>" with N out of range
    """
    if text == "w":
        return generate_memorable_password()
    match = _GENERATE_REQUEST.match(text)
    if not match:
        return None
    length = int(match.group(1)) if match.group(1) else config.DEFAULT_PASSWORD_LENGTH
    return generate_secure_password(length)
