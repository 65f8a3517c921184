"""
Short shareable poll codes.

Codes are tried at length 8 first, then 9, then 10, with five attempts per
length. An existence check that fails counts as "taken" so a flaky database
can never hand out a duplicate.
"""

import logging
import secrets
import string
from typing import Callable

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
CODE_LENGTHS = (8, 9, 10)
ATTEMPTS_PER_LENGTH = 5


class PollCodeError(Exception):
    """Raised when no unique code could be generated."""


def generate_code(length: int) -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_unique_poll_code(code_exists: Callable[[str], bool]) -> str:
    """
    Generate a code that ``code_exists`` reports as free.

    Raises:
        PollCodeError: After every length has been exhausted
    """
    for length in CODE_LENGTHS:
        for _ in range(ATTEMPTS_PER_LENGTH):
            code = generate_code(length)
            try:
                taken = code_exists(code)
            except Exception as e:
                logger.warning(f"⚠️ Poll code check failed for {code}: {e}")
                taken = True
            if not taken:
                return code

    raise PollCodeError("Unable to generate unique poll code after multiple attempts")
