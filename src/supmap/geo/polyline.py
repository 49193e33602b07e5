"""Encoded polyline codec (signed deltas, 5-bit varint groups, printable ASCII).

The routing provider encodes shapes at precision 6 (1e-6 degrees).
"""
from __future__ import annotations

from typing import Iterator, List, Sequence

from supmap.core.errors import MalformedEncodingError
from supmap.core.models import Coordinate

PROVIDER_PRECISION = 6

_OFFSET = 63
_CONTINUATION = 0x20
_CHUNK_MASK = 0x1F


def _iter_values(encoded: str) -> Iterator[int]:
    """Yield the zig-zag decoded signed integers in ``encoded``."""
    result = 0
    shift = 0
    pending = False
    for pos, ch in enumerate(encoded):
        b = ord(ch) - _OFFSET
        if b < 0 or b > 0x3F:
            raise MalformedEncodingError(f"invalid polyline character {ch!r} at {pos}")
        result |= (b & _CHUNK_MASK) << shift
        shift += 5
        pending = True
        if b < _CONTINUATION:
            yield ~(result >> 1) if result & 1 else result >> 1
            result = 0
            shift = 0
            pending = False
    if pending:
        raise MalformedEncodingError("polyline ends inside a value (dangling continuation bit)")


def decode(encoded: str, precision: int = PROVIDER_PRECISION) -> List[Coordinate]:
    factor = 10 ** precision
    values = list(_iter_values(encoded))
    if len(values) % 2:
        raise MalformedEncodingError("polyline ends with a latitude and no longitude")

    points: List[Coordinate] = []
    lat = 0
    lon = 0
    for i in range(0, len(values), 2):
        lat += values[i]
        lon += values[i + 1]
        la, lo = lat / factor, lon / factor
        if not (-90.0 <= la <= 90.0 and -180.0 <= lo <= 180.0):
            raise MalformedEncodingError(f"decoded point ({la}, {lo}) is not a valid coordinate")
        points.append(Coordinate(latitude=la, longitude=lo))
    return points


def _encode_value(value: int) -> str:
    v = ~(value << 1) if value < 0 else value << 1
    out = []
    while v >= _CONTINUATION:
        out.append(chr((_CONTINUATION | (v & _CHUNK_MASK)) + _OFFSET))
        v >>= 5
    out.append(chr(v + _OFFSET))
    return "".join(out)


def encode(points: Sequence[Coordinate], precision: int = PROVIDER_PRECISION) -> str:
    factor = 10 ** precision
    out = []
    prev_lat = 0
    prev_lon = 0
    for p in points:
        lat = round(p.latitude * factor)
        lon = round(p.longitude * factor)
        out.append(_encode_value(lat - prev_lat))
        out.append(_encode_value(lon - prev_lon))
        prev_lat, prev_lon = lat, lon
    return "".join(out)
