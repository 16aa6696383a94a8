import pytest

from fpgaprog.bitstream import ParseError, reverse_byte
from fpgaprog.ihex import DataSection, IhexParser, McsParser

EOF = ":00000001FF"


def record(addr, rtype, payload):
    body = bytes([len(payload), (addr >> 8) & 0xFF, addr & 0xFF, rtype]) + bytes(payload)
    checksum = (-sum(body)) & 0xFF
    return ":" + body.hex().upper() + f"{checksum:02X}"


def test_pinned_record_parses():
    parser = IhexParser(":0400000001020304F2\n" + EOF + "\n", False, False)
    parser.parse()
    assert bytes(parser.data) == b"\x01\x02\x03\x04"
    assert parser.bit_length == 32
    assert parser.sections == [DataSection(addr=0, data=bytearray(b"\x01\x02\x03\x04"))]


def test_contiguous_records_merge():
    text = "\n".join([record(0x10, 0, [1, 2]), record(0x12, 0, [3, 4]), EOF])
    parser = IhexParser(text, False, False)
    parser.parse()
    assert len(parser.sections) == 1
    assert parser.sections[0].addr == 0x10
    assert parser.sections[0].length == 4
    assert bytes(parser.sections[0].data) == b"\x01\x02\x03\x04"


def test_gap_starts_new_section():
    text = "\n".join([record(0x00, 0, [1]), record(0x20, 0, [2, 3]), EOF])
    parser = IhexParser(text, False, False)
    parser.parse()
    assert [(s.addr, bytes(s.data)) for s in parser.sections] == [(0, b"\x01"), (0x20, b"\x02\x03")]
    assert parser.data[0x20:0x22] == b"\x02\x03"


def test_reverse_order_applies_to_sections():
    text = "\n".join([record(0, 0, [0x01, 0x0F]), EOF])
    parser = IhexParser(text, True, False)
    parser.parse()
    expected = bytes([reverse_byte(0x01), reverse_byte(0x0F)])
    assert bytes(parser.data) == expected
    assert bytes(parser.sections[0].data) == expected


def test_comments_and_crlf():
    text = "# comment\r\n" + record(0, 0, [9]) + "\r\n" + EOF + "\r\n"
    parser = IhexParser(text, False, False)
    parser.parse()
    assert bytes(parser.data) == b"\x09"


def test_ihex_bad_checksum():
    with pytest.raises(ParseError, match="checksum"):
        IhexParser(":0400000001020304F3\n" + EOF, False, False).parse()


def test_ihex_missing_colon():
    with pytest.raises(ParseError, match="':'"):
        IhexParser("0400000001020304F2\n", False, False).parse()


def test_ihex_unknown_type():
    with pytest.raises(ParseError, match="unknown type"):
        IhexParser(record(0, 4, [0, 1]) + "\n" + EOF, False, False).parse()


def test_ihex_truncated_record():
    with pytest.raises(ParseError):
        IhexParser(":0400000001\n", False, False).parse()


def test_mcs_extended_linear_address():
    text = "\n".join([":020000040001F9", record(0, 0, [0xAA, 0xBB]), EOF])
    parser = McsParser(text, False, False)
    parser.parse()
    assert parser.data[0x10000:0x10002] == b"\xaa\xbb"
    assert len(parser.data) == 0x10002
    assert parser.bit_length == 16


def test_mcs_reverse_order():
    text = "\n".join([record(0, 0, [0x01, 0x02]), EOF])
    parser = McsParser(text, True, False)
    parser.parse()
    assert bytes(parser.data) == bytes([reverse_byte(1), reverse_byte(2)])


def test_mcs_stops_at_eof_record():
    text = "\n".join([record(0, 0, [5]), EOF, "garbage"])
    parser = McsParser(text, False, False)
    parser.parse()
    assert bytes(parser.data) == b"\x05"


def test_mcs_rejects_comment_lines():
    with pytest.raises(ParseError):
        McsParser("# comment\n" + EOF, False, False).parse()


def test_mcs_bad_checksum():
    with pytest.raises(ParseError, match="checksum"):
        McsParser(":020000040001F8\n" + EOF, False, False).parse()


def test_mcs_unknown_type():
    with pytest.raises(ParseError, match="unknown type"):
        McsParser(record(0, 2, [0, 0]) + "\n" + EOF, False, False).parse()