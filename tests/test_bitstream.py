import pytest

from fpgaprog.bitstream import BitstreamParser, ParseError, RawParser, reverse_byte


@pytest.mark.parametrize("value, expected", [(0x01, 0x80), (0x80, 0x01), (0x00, 0x00), (0xFF, 0xFF)])
def test_reverse_byte_known_values(value, expected):
    assert reverse_byte(value) == expected


def test_reverse_byte_is_involution():
    assert all(reverse_byte(reverse_byte(v)) == v for v in range(256))


def test_reverse_byte_preserves_bit_count():
    assert all(bin(reverse_byte(v)).count("1") == bin(v).count("1") for v in range(256))


def test_raw_parser_keeps_content():
    parser = RawParser(b"\x01\x02\x03", False)
    parser.parse()
    assert bytes(parser.data) == b"\x01\x02\x03"
    assert parser.bit_length == 24


def test_raw_parser_reverse_order():
    content = bytes(range(16))
    parser = RawParser(content, True)
    parser.parse()
    assert bytes(parser.data) == bytes(reverse_byte(b) for b in content)
    assert parser.bit_length == len(content) * 8


def test_raw_parser_empty():
    parser = RawParser(b"", False)
    parser.parse()
    assert parser.data == bytearray()
    assert parser.bit_length == 0


def test_base_parser_accepts_text():
    parser = BitstreamParser("abc", False)
    parser.parse()
    assert bytes(parser.data) == b"abc"


def test_missing_header_value_raises():
    parser = RawParser(b"\x00", False)
    parser.parse()
    with pytest.raises(KeyError):
        parser.get_header_value("idcode")


def test_parse_error_carries_message_and_is_value_error():
    err = ParseError("bad")
    assert str(err) == "bad"
    assert isinstance(err, ValueError)