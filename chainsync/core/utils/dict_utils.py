from typing import Mapping, Optional, Sequence, Union


def _read_path(node: object, path: Sequence[Union[str, int]]) -> Optional[object]:
    """
    Traverse a nested structure of dicts/lists using a path of keys/indices.

    Provider payloads (session descriptors, RPC results) are loosely shaped;
    all low-level access goes through this helper.
    """
    current: object = node
    for part in path:
        if isinstance(part, int):
            if isinstance(current, list) and 0 <= part < len(current):
                current = current[part]
            else:
                return None
        else:
            if isinstance(current, Mapping) and part in current:
                current = current[part]
            else:
                return None
    return current


def _read_str_field(mapping: Mapping[str, object], *keys: str) -> Optional[str]:
    """Return the first non-empty string field among `keys`."""
    for key in keys:
        if key in mapping:
            value = mapping[key]
            if isinstance(value, str) and len(value.strip()) > 0:
                return value.strip()
    return None


def _read_int_field(mapping: Mapping[str, object], key: str) -> Optional[int]:
    """
    Return an integer field if present. Accepts an int or a decimal numeric string.
    Returns None when the key is absent; raises ValueError when it is not numeric.
    """
    if key not in mapping or mapping[key] is None:
        return None
    raw = mapping[key]
    if isinstance(raw, bool):
        raise ValueError(f"Field {key!r} is not an integer: {raw!r}")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    raise ValueError(f"Field {key!r} is not an integer: {raw!r}")
