"""Parser for JEDEC (.jed) fuse map files."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .bitstream import BitstreamParser, ParseError, reverse_byte

__all__ = ["JedSection", "JedParser"]

_STX = "\x02"
_ETX = "\x03"

_SCAN_INT = re.compile(r"\s*([+-]?\d+)")
_SCAN_HEX = re.compile(r"\s*(?:0[xX])?([0-9a-fA-F]+)")

_BOOT_MODES = {
    0: "Single Boot from Configuration Flash",
    1: "Dual Boot from Configuration Flash then External if there is a failure",
    3: "Single Boot from External Flash",
}


def _scan_int(text: str) -> int | None:
    match = _SCAN_INT.match(text)
    return int(match.group(1)) if match else None


def _scan_hex(text: str) -> int | None:
    match = _SCAN_HEX.match(text)
    return int(match.group(1), 16) if match else None


def _char(line: str, index: int) -> int:
    return ord(line[index]) if index < len(line) else 0


def _bits_to_int(bits: str) -> int:
    value = 0
    for i, c in enumerate(bits):
        value |= (ord(c) - ord("0")) << i
    return value


def _pack(bits: str) -> int:
    return sum(1 << i for i, c in enumerate(bits) if c == "1") & 0xFF


@dataclass
class JedSection:
    """A fuse area started by an ``L`` field."""

    offset: int
    data: list[bytes] = field(default_factory=list)
    length: int = 0
    note: str = ""


class _LineReader:
    """Reads ``\\n`` terminated lines, dropping a trailing ``\\r``."""

    def __init__(self, text: str):
        self._parts = text.split("\n")
        self._index = 0
        self.eof = False

    def readline(self) -> str:
        if self._index >= len(self._parts):
            self.eof = True
            return ""
        line = self._parts[self._index]
        self._index += 1
        if self._index == len(self._parts):
            self.eof = True
        return line[:-1] if line.endswith("\r") else line

    def read_field(self) -> list[str]:
        """Collect consecutive lines until one ends with '*'."""
        lines: list[str] = []
        while True:
            buffer = self.readline()
            if not buffer:
                break
            if buffer.endswith("*"):
                lines.append(buffer[:-1])
                break
            lines.append(buffer)
        return lines


class JedParser(BitstreamParser):
    """Parse the fields of a JEDEC file into fuse sections."""

    def __init__(self, data, verbose: bool = False):
        super().__init__(data, verbose)
        self._reset()

    def _reset(self) -> None:
        self.sections: list[JedSection] = []
        self.fuselist = ""
        self.fuse_count = 0
        self.pin_count = 0
        self.max_vect_test = 0
        self.features_row = 0
        self.feabits = 0
        self.has_feabits = False
        self.checksum = 0
        self.computed_checksum = 0
        self.user_code = 0
        self.security_settings = 0
        self.default_fuse_state = 0
        self.default_test_condition = 0
        self.arch_code = 0
        self.pinout_code = 0

    def _add_string(self, content: str, section: JedSection) -> None:
        self.fuselist += content
        packed = bytes(_pack(content[i:i + 8]) for i in range(0, len(content), 8))
        section.data.append(packed)
        section.length += len(content)

    def _add_tokens(self, tokens: list[str], section: JedSection) -> None:
        self.fuselist += "".join(tokens)
        section.data.append(bytes(_pack(tok) for tok in tokens))
        section.length += sum(len(tok) for tok in tokens)

    def _parse_e_field(self, lines: list[str]) -> None:
        if len(lines) < 2:
            raise ParseError("E field needs a feature row and feabits")
        self.features_row = _bits_to_int(lines[0][1:]) & 0xFFFFFFFFFFFFFFFF
        self.feabits = _bits_to_int(lines[1]) & 0xFFFF

    def _parse_l_field(self, lines: list[str]) -> JedSection:
        offset = _scan_int(lines[0][1:])
        if offset is None:
            raise ParseError(f"invalid fuse offset: {lines[0]!r}")
        section = JedSection(offset=offset)
        if len(lines) > 1:
            for content in lines[1:]:
                if content:
                    self._add_string(content, section)
        else:
            self._add_tokens(lines[0].split()[1:], section)
        self.sections.append(section)
        return section

    def _parse_user_code(self, line: str) -> None:
        kind = line[1:2]
        if kind == "H":
            value = _scan_hex(line[2:])
            if value is not None:
                self.user_code = value & 0xFFFFFFFF
        elif kind == "A":
            value = _scan_int(line[2:])
            if value is not None:
                self.user_code = value & 0xFFFFFFFF
        else:
            for c in line[1:]:
                self.user_code = ((self.user_code << 1) | (ord(c) - ord("0"))) & 0xFFFFFFFF

    def parse(self) -> None:
        """Parse the file; raise ParseError on any inconsistency."""
        self._reset()
        text = self._text()

        stx = text.find(_STX)
        if stx < 0:
            raise ParseError("STX not found: wrong file")
        reader = _LineReader(text[stx + 1:])
        if text[stx + 1:stx + 2] == "*":
            reader = _LineReader(text[stx + 2:])
            reader.readline()

        previous_note = ""
        while True:
            lines = reader.read_field()
            if not lines:
                if reader.eof:
                    break
                continue
            first = lines[0]
            instr = first[:1]

            if instr == "N":
                previous_note = first[first.find(" ") + 1:]
            elif instr == "Q":
                count = _scan_int(first[2:])
                qualifier = first[1:2]
                if qualifier not in ("F", "P", "V"):
                    raise ParseError(f"unknown 'Q' qualifier: {first!r}")
                if count is not None:
                    if qualifier == "F":
                        self.fuse_count = count
                    elif qualifier == "P":
                        self.pin_count = count
                    else:
                        self.max_vect_test = count
            elif instr == "G":
                self.security_settings = (_char(first, 1) - ord("0")) & 0xFF
            elif instr == "F":
                self.default_fuse_state = (_char(first, 1) - ord("0")) & 0xFF
            elif instr == "J":
                arch = _scan_int(first[1:])
                if arch is not None:
                    self.arch_code = arch
                pinout = _scan_int(first[3:])
                if pinout is not None:
                    self.pinout_code = pinout
            elif instr == "C":
                value = _scan_hex(first[1:])
                if value is not None:
                    self.checksum = value & 0xFFFF
            elif instr == _ETX:
                if self.verbose:
                    print("end")
                break
            elif instr == "E":
                self._parse_e_field(lines)
                self.has_feabits = True
            elif instr == "L":
                section = self._parse_l_field(lines)
                section.note = previous_note
            elif instr == "U":
                self._parse_user_code(first)
            elif instr == "X":
                value = _scan_int(first[1:])
                if value is not None:
                    self.default_test_condition = value
            else:
                raise ParseError(f"unknown field: {first!r}")

        size = sum(section.length for section in self.sections)

        fuses = self.fuselist
        if len(fuses) % 8:
            fuses += "0" * (8 - len(fuses) % 8)
        try:
            total = sum(reverse_byte(int(fuses[i:i + 8], 2))
                        for i in range(0, len(fuses), 8))
        except ValueError as exc:
            raise ParseError("invalid fuse characters") from exc
        self.computed_checksum = total & 0xFFFF

        if self.verbose:
            print(f"theorical checksum {self.checksum:x} -> {self.computed_checksum:x}")
        if self.checksum != self.computed_checksum:
            raise ParseError("wrong checksum")

        if self.verbose and self.sections:
            print(f"array size {len(self.sections[0].data)}")

        if self.fuse_count != size:
            raise ParseError("Not all fuses are programmed")

    def header_text(self) -> str:
        """Return a human readable summary of the parsed file."""
        out: list[str] = []
        if self.has_feabits:
            fb = self.feabits

            def flag(bit: int, on: str, off: str) -> str:
                return on if (fb >> bit) & 1 else off

            out.append("feabits :")
            out.append(f"{fb:04x} <-> {fb}")
            out.append("\tBoot Mode       : " + _BOOT_MODES.get((fb >> 11) & 0x07, "Error"))
            out.append(f"\tMaster Mode SPI : {flag(11, 'enable', 'disable')}")
            out.append(f"\tI2c port        : {flag(10, 'disable', 'enable')}")
            out.append(f"\tSlave SPI port  : {flag(9, 'disable', 'enable')}")
            out.append(f"\tJTAG port       : {flag(8, 'disable', 'enable')}")
            out.append(f"\tDONE            : {flag(7, 'enable', 'disable')}")
            out.append(f"\tINITN           : {flag(6, 'enable', 'disable')}")
            out.append(f"\tPROGRAMN        : {flag(5, 'disable', 'enable')}")
            out.append(f"\tMy_ASSP         : {flag(4, 'enable', 'disable')}")

        out.append(f"Pin Count  : {self.pin_count}")
        out.append(f"Fuse Count : {self.fuse_count}")

        for i, section in enumerate(self.sections):
            hexdata = "".join(chunk.hex() for chunk in section.data)
            out.append(f"area[{i}] {section.offset:4d} {section.length:4d} "
                       f"{len(section.data)} {hexdata} {section.note}")
            if section.offset == 2656:
                break
        return "\n".join(out) + "\n"