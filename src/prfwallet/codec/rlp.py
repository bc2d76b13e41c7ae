"""Recursive Length Prefix encoding for EVM transactions.

Supported item types:
- int: minimal big-endian bytes (0 encodes as the empty string, 0x80)
- bytes / bytearray: as-is
- str: UTF-8 text
- list / tuple: nested items, 0xc0 list prefix
"""

from typing import Union

RLPItem = Union[int, bytes, bytearray, str, list, tuple]


def int_to_bytes(value: int) -> bytes:
    """Minimal big-endian representation; zero becomes b""."""
    if value < 0:
        raise ValueError("RLP cannot encode negative integers")
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


def _encode_length(length: int, offset: int) -> bytes:
    if length < 56:
        return bytes([offset + length])
    length_bytes = int_to_bytes(length)
    return bytes([offset + 55 + len(length_bytes)]) + length_bytes


def _encode_bytes(data: bytes) -> bytes:
    if len(data) == 1 and data[0] < 0x80:
        return data
    return _encode_length(len(data), 0x80) + data


def encode(item: RLPItem) -> bytes:
    """RLP-encode a (possibly nested) item."""
    if isinstance(item, bool):
        raise TypeError("RLP does not encode booleans")
    if isinstance(item, int):
        return _encode_bytes(int_to_bytes(item))
    if isinstance(item, (bytes, bytearray)):
        return _encode_bytes(bytes(item))
    if isinstance(item, str):
        return _encode_bytes(item.encode("utf-8"))
    if isinstance(item, (list, tuple)):
        payload = b"".join(encode(child) for child in item)
        return _encode_length(len(payload), 0xC0) + payload
    if item is None:
        return b"\x80"
    raise TypeError(f"Cannot RLP-encode {type(item).__name__}")


def _decode_item(data: bytes, pos: int) -> tuple[Union[bytes, list], int]:
    if pos >= len(data):
        raise ValueError("RLP input truncated")

    prefix = data[pos]
    if prefix < 0x80:
        return data[pos:pos + 1], pos + 1

    if prefix < 0xB8:
        start, length = pos + 1, prefix - 0x80
    elif prefix < 0xC0:
        len_of_len = prefix - 0xB7
        start = pos + 1 + len_of_len
        length = int.from_bytes(data[pos + 1:start], "big")
    elif prefix < 0xF8:
        start, length = pos + 1, prefix - 0xC0
    else:
        len_of_len = prefix - 0xF7
        start = pos + 1 + len_of_len
        length = int.from_bytes(data[pos + 1:start], "big")

    end = start + length
    if end > len(data):
        raise ValueError("RLP input truncated")

    if prefix < 0xC0:
        return data[start:end], end

    items = []
    cursor = start
    while cursor < end:
        child, cursor = _decode_item(data, cursor)
        items.append(child)
    if cursor != end:
        raise ValueError("RLP list length mismatch")
    return items, end


def decode(data: bytes) -> Union[bytes, list]:
    """Decode a single RLP item; integers come back as big-endian bytes."""
    item, end = _decode_item(bytes(data), 0)
    if end != len(data):
        raise ValueError("Trailing bytes after RLP item")
    return item
