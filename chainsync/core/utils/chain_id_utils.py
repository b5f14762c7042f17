from __future__ import annotations

import string
from typing import Union

ChainIdLike = Union[int, str]


def to_wire_format(chain_id: int) -> str:
    """
    Encode a decimal chain id in the provider's wire format.

    Lowercase hex digits with a '0x' prefix and no leading zeros (0 -> '0x0').
    """
    if isinstance(chain_id, bool) or not isinstance(chain_id, int):
        raise ValueError(f"Chain id must be an integer, got {chain_id!r}")
    if chain_id < 0:
        raise ValueError(f"Chain id must be non-negative, got {chain_id}")
    return hex(chain_id)


def to_internal_format(raw: ChainIdLike) -> int:
    """
    Decode a chain id into its decimal integer form.

    Accepts:
    - int directly
    - '0x'-prefixed hex string (any case)
    - decimal numeric string, for providers that do not follow the hex convention
    """
    if isinstance(raw, bool):
        raise ValueError(f"Invalid chain id {raw!r}")
    if isinstance(raw, int):
        if raw < 0:
            raise ValueError(f"Chain id must be non-negative, got {raw}")
        return raw
    if not isinstance(raw, str):
        raise ValueError(f"Invalid chain id {raw!r}")

    text = raw.strip()
    if text[:2].lower() == "0x":
        digits = text[2:]
        # int() alone would take signs and underscores
        if not digits or not all(c in string.hexdigits for c in digits):
            raise ValueError(f"Invalid hex chain id {raw!r}")
        return int(digits, 16)

    if text and all(c in string.digits for c in text):
        return int(text)
    raise ValueError(f"Invalid chain id {raw!r}")


def same_chain(left: ChainIdLike, right: ChainIdLike) -> bool:
    """Compare two chain ids after normalizing both to decimal form."""
    return to_internal_format(left) == to_internal_format(right)
