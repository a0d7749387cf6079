import secrets
import time
from typing import Optional

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def issue_reference_id(prefix: str = "MSG", now_ms: Optional[int] = None) -> str:
    """Short support reference: ``PREFIX-<base36 ms>-<8 hex>``, uppercased.

    Correlation only; never use it as a token.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{prefix}-{to_base36(now_ms)}-{secrets.token_hex(4)}".upper()
