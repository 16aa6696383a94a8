import pytest

from fpgaprog.bitstream import ParseError
from fpgaprog.jed import JedParser, JedSection


def make_jed(*fields, prefix=""):
    return prefix + "\x02*\n" + "\n".join(fields) + "\n\x030000\n"


def parsed(text):
    parser = JedParser(text)
    parser.parse()
    return parser


def test_single_multiline_area():
    jed = parsed(make_jed("QF8*", "L0000", "10000000*", "C0001*"))
    assert jed.fuse_count == 8
    assert len(jed.sections) == 1
    section = jed.sections[0]
    assert section.offset == 0
    assert section.length == 8
    assert section.data == [b"\x01"]
    assert jed.fuselist == "10000000"
    assert jed.computed_checksum == jed.checksum


def test_inline_area_tokens_form_one_chunk():
    jed = parsed(make_jed("QF6*", "L0000 0000 00*", "C0000*"))
    section = jed.sections[0]
    assert section.length == 6
    assert section.data == [b"\x00\x00"]
    assert jed.fuselist == "000000"


def test_multiple_lines_give_one_chunk_each():
    jed = parsed(make_jed("QF16*", "L0000", "00000000", "00000000*", "C0000*"))
    section = jed.sections[0]
    assert len(section.data) == 2
    assert section.length == 16
    assert sum(s.length for s in jed.sections) == jed.fuse_count


def test_notes_attach_to_following_area():
    jed = parsed(make_jed("QF16*", "NOTE TAG DATA*", "L0000 00000000*",
                          "N END CONFIG DATA*", "L0008 00000000*", "C0000*"))
    assert [s.note for s in jed.sections] == ["TAG DATA", "END CONFIG DATA"]
    assert [s.offset for s in jed.sections] == [0, 8]


def test_header_fields():
    jed = parsed(make_jed("QF0*", "QP24*", "UH1234ABCD*", "X1*", "J1 2*", "G0*", "F0*", "C0000*"))
    assert jed.pin_count == 24
    assert jed.user_code == 0x1234ABCD
    assert jed.default_test_condition == 1
    assert jed.arch_code == 1
    assert jed.pinout_code == 2
    assert jed.sections == []


def test_user_code_ascii():
    jed = parsed(make_jed("QF0*", "UA42*", "C0000*"))
    assert jed.user_code == 42


def test_user_code_binary():
    jed = parsed(make_jed("QF0*", "U0101*", "C0000*"))
    assert jed.user_code == 5


def test_e_field_sets_feabits():
    jed = parsed(make_jed("QF0*", "E1000", "0100*", "C0000*"))
    assert jed.has_feabits
    assert jed.features_row == 1
    assert jed.feabits == 2
    assert "feabits :" in jed.header_text()


def test_text_before_stx_and_crlf():
    text = make_jed("QF8*", "L0000 11111111*", "C00FF*", prefix="garbage line\n").replace("\n", "\r\n")
    jed = parsed(text)
    assert jed.sections[0].data == [b"\xff"]
    assert jed.checksum == jed.computed_checksum


def test_stx_without_star():
    jed = parsed("\x02QF8*\nL0000 10000000*\nC0001*\n\x030000\n")
    assert jed.fuse_count == 8
    assert jed.fuselist == "10000000"


def test_header_text_counts():
    jed = parsed(make_jed("QF8*", "QP24*", "L0000 10000000*", "C0001*"))
    text = jed.header_text()
    assert "Pin Count  : 24" in text
    assert "Fuse Count : 8" in text
    assert "area[0]" in text


def test_missing_stx():
    with pytest.raises(ParseError, match="STX"):
        JedParser("QF8*\nL0000 10000000*\n").parse()


def test_wrong_checksum():
    with pytest.raises(ParseError, match="checksum"):
        JedParser(make_jed("QF8*", "L0000 10000000*", "C0002*")).parse()


def test_fuse_count_mismatch():
    with pytest.raises(ParseError, match="fuses"):
        JedParser(make_jed("QF16*", "L0000 00000000*", "C0000*")).parse()


def test_unknown_q_qualifier():
    with pytest.raises(ParseError):
        JedParser(make_jed("QZ8*", "C0000*")).parse()


def test_unknown_field():
    with pytest.raises(ParseError, match="unknown field"):
        JedParser(make_jed("Z123*", "C0000*")).parse()


def test_section_defaults():
    section = JedSection(offset=3)
    assert (section.data, section.length, section.note) == ([], 0, "")