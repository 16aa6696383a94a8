from collections import defaultdict
from types import SimpleNamespace

import pytest

from fpgaprog import lattice_regs as regs
from fpgaprog import machxo3d
from fpgaprog.bitstream import ParseError
from fpgaprog.jed import JedSection
from fpgaprog.lattice import Lattice, LatticeError, ProgramType

MACHXO3D_IDCODE = 0x012e3043

_PAIRS = {0x59: 0x5A, 0x5B: 0x5C, 0x61: 0x62, 0x63: 0x64, 0xE4: 0xE7, 0xF8: 0xFB}


class FakeJtag:
    """Minimal register model of a MachXO3D behind a JTAG chain."""

    def __init__(self, allow_isc=True, store_writes=True):
        self.target_device_id = MACHXO3D_IDCODE
        self.ir = None
        self.writes = defaultdict(list)
        self.regs = {}
        self.isc = False
        self.done = False
        self.flash = []
        self.ptr = 0
        self.allow_isc = allow_isc
        self.store_writes = store_writes

    def set_state(self, state):
        pass

    def toggle_clk(self, count):
        pass

    def go_test_logic_reset(self):
        pass

    def shift_ir(self, tdi, irlen, end_state=None, read=False):
        self.ir = bytes(tdi)[0]
        if self.ir == 0x26:
            self.isc = False
        elif self.ir == 0x5E:
            self.done = True
        elif self.ir == 0x46:
            self.ptr = 0
        return None

    def shift_dr(self, tdi, drlen, end_state=None, read=False):
        tdi = bytes(tdi)
        ir = self.ir
        if not read:
            self.writes[ir].append(tdi)
            if ir == 0xC6:
                self.isc = self.allow_isc
            elif ir == 0x70:
                self.flash.append(tdi)
            elif ir in _PAIRS and self.store_writes:
                self.regs[_PAIRS[ir]] = tdi
            return None
        n = len(tdi)
        if ir == 0x3C:
            value = ((int(self.isc) << 9) | (int(self.done) << 8)).to_bytes(4, "little")
        elif ir == 0xF0:
            value = b""
        elif ir == 0x73:
            value = self.flash[self.ptr] if self.ptr < len(self.flash) else b""
            self.ptr += 1
        else:
            value = self.regs.get(ir, b"")
        return value[:n].ljust(n, b"\0")


def make_lattice(jtag, filename="", verify=True, sector="CFG0"):
    return Lattice(jtag, filename, "", ProgramType.NONE, sector, verify, -1)


KEY = bytes(range(64))


def pub_file_content(key=KEY):
    return b"\x0f\xf0" + b"made-up header" + b"\xf0\x0f" + key + b"\n"


def test_parse_pubkey_extracts_key():
    assert machxo3d.parse_pubkey(pub_file_content()) == KEY


def test_parse_pubkey_rejects_missing_magic():
    with pytest.raises(ParseError):
        machxo3d.parse_pubkey(b"\x00\x00" + KEY)


def test_parse_pubkey_rejects_unterminated_header():
    with pytest.raises(ParseError):
        machxo3d.parse_pubkey(b"\x0f\xf0header only")


def test_parse_pubkey_rejects_truncated_key():
    with pytest.raises(ParseError):
        machxo3d.parse_pubkey(b"\x0f\xf0\xf0\x0f" + KEY[:10])


def test_program_pubkey_sends_parts_reversed_and_verifies():
    jtag = FakeJtag()
    lat = make_lattice(jtag)
    assert machxo3d.program_pubkey(lat, KEY) is True
    assert jtag.writes[regs.PROG_ECDSA_PUBKEY0] == [KEY[48:64][::-1]]
    assert jtag.writes[regs.PROG_ECDSA_PUBKEY3] == [KEY[0:16][::-1]]


def test_program_pubkey_detects_bad_readback():
    jtag = FakeJtag(store_writes=False)
    lat = make_lattice(jtag)
    assert machxo3d.program_pubkey(lat, KEY) is False


def test_program_pubkey_rejects_wrong_length():
    lat = make_lattice(FakeJtag())
    with pytest.raises(ValueError):
        machxo3d.program_pubkey(lat, KEY[:32])


def test_program_feabits_round_trip():
    jtag = FakeJtag()
    lat = make_lattice(jtag)
    assert machxo3d.program_feabits(lat, 0x12345678) is True
    assert jtag.writes[regs.PROG_FEABITS] == [(0x12345678).to_bytes(4, "little")]


def test_program_feabits_verify_failure():
    jtag = FakeJtag(store_writes=False)
    lat = make_lattice(jtag)
    assert machxo3d.program_feabits(lat, 0x0000A5A5) is False


def test_program_feabits_without_verify_skips_readback():
    jtag = FakeJtag(store_writes=False)
    lat = make_lattice(jtag, verify=False)
    assert machxo3d.program_feabits(lat, 0x0000A5A5) is True


def test_program_feature_row_round_trip():
    jtag = FakeJtag()
    lat = make_lattice(jtag)
    row = bytes(range(1, 13))
    assert machxo3d.program_feature_row(lat, row) is True
    assert jtag.writes[regs.PROG_FEATURE_ROW] == [row + bytes(4)]


def test_program_int_flash_cfg_section():
    jtag = FakeJtag()
    lat = make_lattice(jtag)
    lines = [bytes([i] * 16) for i in range(1, 4)]
    jed = SimpleNamespace(fuse_count=128 * 100,
                          sections=[JedSection(offset=0, data=lines, note="")])
    machxo3d.program_int_flash(lat, jed)
    assert jtag.flash == lines
    assert b"\x01\x00" in jtag.writes[regs.FLASH_ERASE]
    assert jtag.writes[regs.RESET_CFG_ADDR][0] == b"\x01\x00"
    assert jtag.done is True
    assert jtag.isc is False


def test_program_int_flash_ufm_at_offset_uses_write_address():
    jtag = FakeJtag()
    lat = make_lattice(jtag, verify=False)
    lines = [bytes([7] * 16)]
    jed = SimpleNamespace(fuse_count=128 * 100,
                          sections=[JedSection(offset=128 * 5, data=lines,
                                               note="USER MEMORY DATA 1")])
    machxo3d.program_int_flash(lat, jed)
    assert jtag.writes[regs.LSC_WRITE_ADDRESS] == [bytes([5, 0x40, 0])]
    assert regs.FLASH_ERASE not in jtag.writes
    assert jtag.flash == lines


def test_program_int_flash_skips_empty_sections():
    jtag = FakeJtag()
    lat = make_lattice(jtag)
    jed = SimpleNamespace(fuse_count=128 * 100,
                          sections=[JedSection(offset=0, data=[], note="")])
    machxo3d.program_int_flash(lat, jed)
    assert jtag.flash == []


def test_program_int_flash_rejects_zero_fuse_count():
    lat = make_lattice(FakeJtag())
    jed = SimpleNamespace(fuse_count=0,
                          sections=[JedSection(offset=0, data=[bytes(16)], note="")])
    with pytest.raises(LatticeError):
        machxo3d.program_int_flash(lat, jed)


def test_program_int_flash_enable_failure():
    lat = make_lattice(FakeJtag(allow_isc=False))
    jed = SimpleNamespace(fuse_count=128 * 100, sections=[])
    with pytest.raises(LatticeError):
        machxo3d.program_int_flash(lat, jed)


def test_program_pubkey_file_writes_new_key(tmp_path):
    path = tmp_path / "key.pub"
    path.write_bytes(pub_file_content())
    jtag = FakeJtag()
    lat = make_lattice(jtag, filename=path)
    machxo3d.program_pubkey_file(lat)
    stored = b"".join(jtag.regs[c] for c in (0x5A, 0x5C, 0x62, 0x64))
    assert stored == KEY[::-1]
    assert jtag.writes[0xC4] == [b"\x03", b"\x03"]
    assert jtag.done is True


def test_program_pubkey_file_same_key_skips_erase(tmp_path):
    path = tmp_path / "key.pub"
    path.write_bytes(pub_file_content())
    jtag = FakeJtag()
    rev = KEY[::-1]
    for i, cmd in enumerate((0x5A, 0x5C, 0x62, 0x64)):
        jtag.regs[cmd] = rev[16 * i:16 * (i + 1)]
    lat = make_lattice(jtag, filename=path)
    machxo3d.program_pubkey_file(lat)
    assert regs.FLASH_ERASE not in jtag.writes
    assert regs.PROG_ECDSA_PUBKEY0 not in jtag.writes


def test_program_pubkey_file_bad_content(tmp_path):
    path = tmp_path / "key.pub"
    path.write_bytes(b"not a key")
    lat = make_lattice(FakeJtag(), filename=path)
    with pytest.raises(LatticeError):
        machxo3d.program_pubkey_file(lat)


def test_program_pubkey_file_missing_file(tmp_path):
    lat = make_lattice(FakeJtag(), filename=tmp_path / "absent.pub")
    with pytest.raises(LatticeError):
        machxo3d.program_pubkey_file(lat)