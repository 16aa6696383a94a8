"""Common bitstream parser machinery and the raw (binary) file parser."""

from __future__ import annotations

__all__ = ["ParseError", "BitstreamParser", "RawParser", "reverse_byte"]


class ParseError(ValueError):
    """Raised when a configuration file cannot be parsed."""


def reverse_byte(value: int) -> int:
    """Return the byte with its bit order reversed (LSB <-> MSB)."""
    return int(f"{value & 0xFF:08b}"[::-1], 2)


class BitstreamParser:
    """Base class holding the raw file content and the parsed bitstream.

    After :meth:`parse`, ``data`` holds the bitstream bytes, ``bit_length``
    its size in bits and ``header`` any key/value information found.
    """

    def __init__(self, data: bytes | bytearray | str, verbose: bool = False):
        if isinstance(data, str):
            data = data.encode("latin-1")
        self.raw = bytes(data)
        self.verbose = verbose
        self.data = bytearray()
        self.bit_length = 0
        self.header: dict[str, str] = {}

    def _text(self) -> str:
        return self.raw.decode("latin-1")

    def parse(self) -> None:
        """Use the raw content unchanged as the bitstream."""
        self.data = bytearray(self.raw)
        self.bit_length = len(self.data) * 8

    def get_header_value(self, key: str) -> str:
        """Return a header value; raise KeyError if it is absent."""
        return self.header[key]


class RawParser(BitstreamParser):
    """Parser for raw binary files, optionally bit-reversing every byte."""

    def __init__(self, data: bytes | bytearray | str, reverse_order: bool = False):
        super().__init__(data, verbose=False)
        self.reverse_order = reverse_order

    def parse(self) -> None:
        if self.reverse_order:
            self.data = bytearray(reverse_byte(b) for b in self.raw)
        else:
            self.data = bytearray(self.raw)
        self.bit_length = len(self.data) * 8