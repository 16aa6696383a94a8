"""Intel HEX (.hex/.ihex) and MCS file parsers.

Record format: ``:LLAAAATTHH...HHCC`` with LL the data length, AAAA the
address, TT the record type, HH the data and CC the two's complement
checksum of all preceding bytes.
"""

from __future__ import annotations

import string
from collections.abc import Iterator
from dataclasses import dataclass, field

from .bitstream import BitstreamParser, ParseError, reverse_byte

__all__ = ["DataSection", "IhexParser", "McsParser"]

_LEN_BASE = 1
_ADDR_BASE = 3
_TYPE_BASE = 7
_DATA_BASE = 9

_TYPE_DATA = 0
_TYPE_EOF = 1
_TYPE_EXT_LINEAR_ADDR = 4

_HEX_DIGITS = frozenset(string.hexdigits)
_FILL = 0xFF


@dataclass
class DataSection:
    """A run of contiguous data bytes starting at ``addr``."""

    addr: int
    data: bytearray = field(default_factory=bytearray)

    @property
    def length(self) -> int:
        return len(self.data)


def _lines(text: str) -> Iterator[str]:
    parts = text.split("\n")
    if parts and parts[-1] == "":
        parts.pop()
    for line in parts:
        yield line[:-1] if line.endswith("\r") else line


def _hex_field(line: str, start: int, width: int) -> int:
    chunk = line[start:start + width]
    if len(chunk) != width or not set(chunk) <= _HEX_DIGITS:
        raise ParseError(f"invalid or truncated record: {line!r}")
    return int(chunk, 16)


def _store(buffer: bytearray, addr: int, values: list[int]) -> None:
    end = addr + len(values)
    if end > len(buffer):
        buffer.extend(bytes([_FILL]) * (end - len(buffer)))
    buffer[addr:end] = bytes(values)


def _record_header(line: str) -> tuple[int, int, int, int]:
    if not line.startswith(":"):
        raise ParseError("a line must start with ':'")
    byte_len = _hex_field(line, _LEN_BASE, 2)
    addr = _hex_field(line, _ADDR_BASE, 4)
    rtype = _hex_field(line, _TYPE_BASE, 2)
    checksum = _hex_field(line, _DATA_BASE + byte_len * 2, 2)
    return byte_len, addr, rtype, checksum


def _payload(line: str, byte_len: int) -> list[int]:
    return [_hex_field(line, _DATA_BASE + 2 * i, 2) for i in range(byte_len)]


def _check(checksum: int, total: int) -> None:
    if checksum != (-total) & 0xFF:
        raise ParseError("wrong checksum")


class IhexParser(BitstreamParser):
    """Parser for Intel HEX files; also groups data into contiguous sections."""

    def __init__(self, data, reverse_order: bool = False, verbose: bool = False):
        super().__init__(data, verbose)
        self.reverse_order = reverse_order
        self._base_addr = 0
        self.sections: list[DataSection] = []

    def parse(self) -> None:
        self.data = bytearray()
        self.bit_length = 0
        self.sections = []
        current: DataSection | None = None
        next_addr = 0

        for line in _lines(self._text()):
            if line.startswith("#"):
                continue
            byte_len, addr, rtype, checksum = _record_header(line)
            total = byte_len + rtype + (addr & 0xFF) + ((addr >> 8) & 0xFF)

            if rtype == _TYPE_DATA:
                loc_addr = self._base_addr + addr
                if current is None or next_addr != addr:
                    if current is not None:
                        self.sections.append(current)
                    current = DataSection(addr=loc_addr & 0xFFFF)
                payload = _payload(line, byte_len)
                stored = [reverse_byte(b) for b in payload] if self.reverse_order else payload
                _store(self.data, loc_addr, stored)
                total += sum(payload)
                current.data.extend(stored)
                next_addr = (addr + byte_len) & 0xFFFF
                self.bit_length += byte_len * 8
            elif rtype == _TYPE_EOF:
                if current is not None and current.length:
                    self.sections.append(current)
                return
            else:
                raise ParseError("unknown type")

            _check(checksum, total)


class McsParser(BitstreamParser):
    """Parser for MCS files (Intel HEX with extended linear addresses)."""

    def __init__(self, data, reverse_order: bool = False, verbose: bool = False):
        super().__init__(data, verbose)
        self.reverse_order = reverse_order
        self._base_addr = 0

    def parse(self) -> None:
        self.data = bytearray()
        self.bit_length = 0
        self._base_addr = 0

        for line in _lines(self._text()):
            byte_len, addr, rtype, checksum = _record_header(line)
            total = byte_len + rtype + (addr & 0xFF) + ((addr >> 8) & 0xFF)

            if rtype == _TYPE_DATA:
                loc_addr = self._base_addr + addr
                payload = _payload(line, byte_len)
                stored = [reverse_byte(b) for b in payload] if self.reverse_order else payload
                _store(self.data, loc_addr, stored)
                total += sum(payload)
                self.bit_length += byte_len * 8
            elif rtype == _TYPE_EOF:
                return
            elif rtype == _TYPE_EXT_LINEAR_ADDR:
                upper = _hex_field(line, _DATA_BASE, 4)
                self._base_addr = upper << 16
                total += (upper & 0xFF) + ((upper >> 8) & 0xFF)
            else:
                raise ParseError("unknown type")

            _check(checksum, total)