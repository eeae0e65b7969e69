"""
Trade id reconciliation.

Older client data identifies trades with arbitrary strings (timestamps,
"trade_12" style keys). The database keys trades by UUID, so legacy ids
are mapped onto a deterministic, v4-shaped UUID: the same legacy id always
lands on the same row.
"""

import re

_STRICT_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
_LOOSE_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_uuid(value: str, strict: bool = True) -> bool:
    if not isinstance(value, str):
        return False
    pattern = _STRICT_UUID_RE if strict else _LOOSE_UUID_RE
    return bool(pattern.match(value))


def _to_int32(x: int) -> int:
    x &= 0xFFFFFFFF
    return x - 0x100000000 if x & 0x80000000 else x


def simple_hash(value: str) -> str:
    """32-bit string hash, as lowercase hex padded to 8 chars."""
    h = 0
    raw = value.encode("utf-16-le")
    for i in range(0, len(raw), 2):
        code_unit = raw[i] | (raw[i + 1] << 8)
        h = _to_int32((h << 5) - h + code_unit)
    return format(abs(h), "x").rjust(8, "0")


def convert_to_uuid(trade_id: str) -> str:
    """Return trade_id if it is already a UUID, else its deterministic UUID."""
    if is_uuid(trade_id):
        return trade_id

    hash1 = simple_hash(trade_id)
    hash2 = simple_hash(trade_id + "_salt1")
    hash3 = simple_hash(trade_id + "_salt2")
    hash4 = simple_hash(trade_id + "_salt3")

    variant = format((int(hash4[0], 16) & 0x3) | 0x8, "x")

    return "-".join(
        [
            hash1[:8],
            hash2[:4],
            "4" + hash3[:3],
            variant + hash4[1:4],
            (hash1 + hash2)[:12],
        ]
    )
