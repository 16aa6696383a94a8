import pytest

from fpgaprog.bitstream import ParseError
from fpgaprog.latticebit import LatticeBitParser

PREAMBLE = b"\xff\xff\xff\xbd\xb3"
CONFIG = b"\xe2\x00\x00\x00\x41\x11\x10\x43\x00\x00"
HEADER = b"\xff\x00Part: LFE5U-25F-6CABGA256\x00Date: Jan 1 12:00\x00Plain\x00"


def build(prefix=b""):
    return prefix + HEADER + PREAMBLE + CONFIG


def test_header_fields():
    parser = LatticeBitParser(build(), False)
    parser.parse()
    assert parser.get_header_value("Part") == "LFE5U-25F-6CABGA256"
    assert parser.get_header_value("Date") == "Jan 1 12:00"
    assert "Plain" not in parser.header


def test_idcode_extracted():
    parser = LatticeBitParser(build(), False)
    parser.parse()
    assert parser.get_header_value("idcode") == "41111043"


def test_data_starts_at_preamble():
    parser = LatticeBitParser(build(), False)
    parser.parse()
    assert bytes(parser.data) == PREAMBLE + CONFIG
    assert parser.bit_length == len(parser.data) * 8


def test_radiant_prefix_accepted():
    parser = LatticeBitParser(build(b"LSCC"), False)
    parser.parse()
    assert parser.get_header_value("idcode") == "41111043"
    assert parser.data[:5] == PREAMBLE


def test_wrong_radiant_magic():
    with pytest.raises(ParseError):
        LatticeBitParser(build(b"LXXX"), False).parse()


def test_missing_comment_start():
    with pytest.raises(ParseError):
        LatticeBitParser(b"\x00\x01" + PREAMBLE, False).parse()


def test_no_preamble_byte():
    with pytest.raises(ParseError, match="preamble"):
        LatticeBitParser(b"\xff\x00Part: x\x00", False).parse()


def test_missing_preamble():
    with pytest.raises(ParseError, match="missing preamble"):
        LatticeBitParser(HEADER + b"\xff\x00\x00\x00\x00", False).parse()


def test_no_idcode_without_e2():
    parser = LatticeBitParser(HEADER + PREAMBLE + b"\x00\x01", False)
    parser.parse()
    with pytest.raises(KeyError):
        parser.get_header_value("idcode")