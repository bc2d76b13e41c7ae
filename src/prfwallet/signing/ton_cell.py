"""Minimal TON cell builder.

Bits are accumulated MSB-first. ``build`` packs them into bytes and, when
the bit length is not a multiple of 8, sets the completion tag (a single 1
bit right after the data). References are kept on the cell but are not
serialised by ``build``; this is a flat encoding, not a standard BOC.
"""

from dataclasses import dataclass
from typing import Optional

from prfwallet.addresses.ton import parse_address

MAX_COINS_BYTES = 15


@dataclass(frozen=True)
class Cell:
    bits: bytes
    refs: tuple[bytes, ...] = ()


class CellBuilder:
    """Chainable bit writer.

    Example:
        payload = (
            CellBuilder()
            .write_uint(698983191, 32)
            .write_coins(1_000_000_000)
            .build()
        )
    """

    def __init__(self):
        self._bits: list[bool] = []
        self._refs: list[bytes] = []

    @property
    def bit_length(self) -> int:
        return len(self._bits)

    def write_bit(self, bit: bool) -> "CellBuilder":
        self._bits.append(bool(bit))
        return self

    def write_bits(self, value: int, count: int) -> "CellBuilder":
        """Write the low ``count`` bits of ``value``, most significant first."""
        for i in range(count - 1, -1, -1):
            self._bits.append(bool((value >> i) & 1))
        return self

    def write_uint(self, value: int, bits: int) -> "CellBuilder":
        if value < 0 or value >= 1 << bits:
            raise ValueError(f"{value} does not fit in uint{bits}")
        return self.write_bits(value, bits)

    def write_int(self, value: int, bits: int) -> "CellBuilder":
        """Two's complement signed integer."""
        if not -(1 << (bits - 1)) <= value < 1 << (bits - 1):
            raise ValueError(f"{value} does not fit in int{bits}")
        return self.write_bits(value & ((1 << bits) - 1), bits)

    def write_bytes(self, data: bytes) -> "CellBuilder":
        for byte in data:
            self.write_bits(byte, 8)
        return self

    def write_coins(self, value: int) -> "CellBuilder":
        """VarUInteger 16: 4-bit byte length, then that many bytes."""
        if value < 0:
            raise ValueError("Coin amount cannot be negative")
        if value == 0:
            return self.write_uint(0, 4)
        length = (value.bit_length() + 7) // 8
        if length > MAX_COINS_BYTES:
            raise ValueError("Coin amount too large")
        self.write_uint(length, 4)
        return self.write_uint(value, length * 8)

    def write_address(self, address: Optional[str]) -> "CellBuilder":
        """MsgAddressInt ``addr_std`` without anycast, or ``addr_none``."""
        if not address:
            return self.write_bits(0b00, 2)
        parsed = parse_address(address)
        self.write_bits(0b10, 2)
        self.write_bit(False)
        self.write_int(parsed.workchain, 8)
        return self.write_bytes(parsed.hash)

    def write_ref(self, cell: bytes) -> "CellBuilder":
        self._refs.append(bytes(cell))
        return self

    def build(self) -> bytes:
        bit_length = len(self._bits)
        data = bytearray((bit_length + 7) // 8)
        for i, bit in enumerate(self._bits):
            if bit:
                data[i // 8] |= 1 << (7 - i % 8)
        if bit_length % 8:
            data[-1] |= 1 << (7 - bit_length % 8)
        return bytes(data)

    def to_cell(self) -> Cell:
        return Cell(bits=self.build(), refs=tuple(self._refs))
