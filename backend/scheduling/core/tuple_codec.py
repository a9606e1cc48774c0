"""Tuple Codec — order-preserving byte encoding for typed key tuples.

Invariants:
    - bytes order of pack(a) vs pack(b) equals natural tuple order of a vs b
      (first element most significant; across types, order follows the type code)
    - unpack(pack(t)) == t for every supported element type
    - unpack raises MalformedKeyError on any input pack() could not have produced
    - Integers limited to 8 bytes of magnitude (|n| < 2**64)

Design Decisions:
    - FoundationDB tuple-layer type codes: keys stay readable by other tuple-layer clients
      sharing the same store (ADR: interoperability over a private format)
    - bool/float rejected with ValueError: they are caller bugs, not stored-data corruption
"""

from typing import Union

from scheduling.core.errors import MalformedKeyError

Element = Union[None, bytes, str, int, tuple]

NULL_CODE = 0x00
BYTES_CODE = 0x01
STRING_CODE = 0x02
NESTED_CODE = 0x05
INT_ZERO_CODE = 0x14
_MAX_INT_BYTES = 8

_ESCAPE = b"\x00\xff"


# -- Encoding ------------------------------------------------------------------

def pack(elements: tuple) -> bytes:
    """Encode a tuple of elements into an order-preserving key."""
    if not isinstance(elements, tuple):
        raise ValueError(f"pack expects a tuple, got {type(elements).__name__}")
    return b"".join(_encode(e, nested=False) for e in elements)


def range(elements: tuple = ()) -> tuple[bytes, bytes]:
    """Key range [begin, end) holding every tuple that extends `elements`."""
    p = pack(elements)
    return p + b"\x00", p + b"\xff"


def _encode(value: Element, nested: bool) -> bytes:
    if value is None:
        return _ESCAPE if nested else bytes([NULL_CODE])
    if isinstance(value, bool):
        raise ValueError("bool elements are not supported")
    if isinstance(value, bytes):
        return bytes([BYTES_CODE]) + value.replace(b"\x00", _ESCAPE) + b"\x00"
    if isinstance(value, str):
        raw = value.encode("utf-8")
        return bytes([STRING_CODE]) + raw.replace(b"\x00", _ESCAPE) + b"\x00"
    if isinstance(value, int):
        return _encode_int(value)
    if isinstance(value, tuple):
        inner = b"".join(_encode(e, nested=True) for e in value)
        return bytes([NESTED_CODE]) + inner + b"\x00"
    raise ValueError(f"Unsupported tuple element type: {type(value).__name__}")


def _encode_int(value: int) -> bytes:
    if value == 0:
        return bytes([INT_ZERO_CODE])
    size = (abs(value).bit_length() + 7) // 8
    if size > _MAX_INT_BYTES:
        raise ValueError(f"Integer {value} exceeds {_MAX_INT_BYTES} bytes")
    if value > 0:
        return bytes([INT_ZERO_CODE + size]) + value.to_bytes(size, "big")
    # ones' complement keeps negative values ordered below zero
    max_value = (1 << (size * 8)) - 1
    return bytes([INT_ZERO_CODE - size]) + (max_value + value).to_bytes(size, "big")


# -- Decoding ------------------------------------------------------------------

def unpack(key: bytes, prefix_len: int = 0) -> tuple:
    """Decode a key produced by pack(), skipping `prefix_len` leading bytes."""
    if not isinstance(key, (bytes, bytearray)):
        raise MalformedKeyError(f"expected bytes, got {type(key).__name__}")
    key = bytes(key)
    pos = prefix_len
    out = []
    while pos < len(key):
        value, pos = _decode(key, pos, nested=False)
        out.append(value)
    return tuple(out)


def _decode(key: bytes, pos: int, nested: bool) -> tuple[Element, int]:
    code = key[pos]
    if code == NULL_CODE:
        if nested:
            return None, pos + 2
        return None, pos + 1
    if code in (BYTES_CODE, STRING_CODE):
        end = _find_terminator(key, pos + 1)
        raw = key[pos + 1:end].replace(_ESCAPE, b"\x00")
        if code == BYTES_CODE:
            return raw, end + 1
        try:
            return raw.decode("utf-8"), end + 1
        except UnicodeDecodeError as e:
            raise MalformedKeyError(f"invalid UTF-8 string at offset {pos}", key) from e
    if code == NESTED_CODE:
        return _decode_nested(key, pos + 1)
    if INT_ZERO_CODE - _MAX_INT_BYTES <= code <= INT_ZERO_CODE + _MAX_INT_BYTES:
        return _decode_int(key, pos, code)
    raise MalformedKeyError(f"unknown type code 0x{code:02x} at offset {pos}", key)


def _decode_int(key: bytes, pos: int, code: int) -> tuple[int, int]:
    size = abs(code - INT_ZERO_CODE)
    end = pos + 1 + size
    if end > len(key):
        raise MalformedKeyError(f"truncated integer at offset {pos}", key)
    # pack() always uses the shortest width, so a padding lead byte is corruption
    if size and key[pos + 1] == (0x00 if code > INT_ZERO_CODE else 0xFF):
        raise MalformedKeyError(f"non-canonical integer at offset {pos}", key)
    magnitude = int.from_bytes(key[pos + 1:end], "big")
    if code >= INT_ZERO_CODE:
        return magnitude, end
    return magnitude - ((1 << (size * 8)) - 1), end


def _decode_nested(key: bytes, pos: int) -> tuple[tuple, int]:
    out = []
    while True:
        if pos >= len(key):
            raise MalformedKeyError("unterminated nested tuple", key)
        if key[pos] == 0x00:
            if pos + 1 < len(key) and key[pos + 1] == 0xFF:
                out.append(None)
                pos += 2
                continue
            return tuple(out), pos + 1
        value, pos = _decode(key, pos, nested=True)
        out.append(value)


def _find_terminator(key: bytes, pos: int) -> int:
    """Index of the first 0x00 not followed by the 0xff escape byte."""
    while True:
        idx = key.find(b"\x00", pos)
        if idx < 0:
            raise MalformedKeyError(f"unterminated byte string at offset {pos - 1}", key)
        if idx + 1 < len(key) and key[idx + 1] == 0xFF:
            pos = idx + 2
            continue
        return idx
