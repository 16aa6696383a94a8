"""Parser for Lattice .bit bitstream files."""

from __future__ import annotations

from .bitstream import BitstreamParser, ParseError

__all__ = ["LatticeBitParser"]

_RADIANT_MAGIC = b"LSCC"
_COMMENT_START = b"\xff\x00"
_PREAMBLE = b"\xff\xff\xbd\xb3"
_VERIFY_ID_CMD = 0xE2


class LatticeBitParser(BitstreamParser):
    """Parse the comment header and the configuration data of a .bit file."""

    def __init__(self, data, verbose: bool = False):
        super().__init__(data, verbose)
        self._end_header = 0

    def _parse_header(self) -> None:
        raw = self.raw
        pos = 0
        if raw[:1] == b"L":
            if raw[:4] != _RADIANT_MAGIC:
                raise ParseError(f"wrong file: {raw[:4]!r}")
            pos += 4

        if raw[pos:pos + 2] != _COMMENT_START:
            raise ParseError(f"wrong file: {raw[pos:pos + 2].hex()}")
        pos += 2

        end = raw.find(b"\xff", pos)
        if end < 0:
            raise ParseError("preamble not found")
        self._end_header = end

        for entry in raw[pos:end].decode("latin-1").split("\0"):
            key, sep, value = entry.partition(":")
            if sep:
                self.header[key] = value.strip(" ")

    def parse(self) -> None:
        self.header = {}
        self._parse_header()
        end = self._end_header
        if self.raw[end + 1:end + 5] != _PREAMBLE:
            raise ParseError("missing preamble")

        self.data = bytearray(self.raw[end:])
        self.bit_length = len(self.data) * 8

        idx = self.data.find(bytes([_VERIFY_ID_CMD]))
        if idx >= 0 and idx + 8 <= len(self.data):
            idcode = int.from_bytes(self.data[idx + 4:idx + 8], "big")
            self.header["idcode"] = f"{idcode:08x}"