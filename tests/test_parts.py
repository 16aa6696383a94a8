import pytest

from fpgaprog.parts import (
    FPGA_LIST,
    MANUFACTURERS,
    MISC_DEV_LIST,
    FpgaModel,
    idcode_manufacturer_id,
    idcode_part,
    idcode_version,
    irlength_for,
)


def test_irlength_from_fpga_list():
    assert irlength_for(0x0362D093) == 6
    assert irlength_for(0x020f20dd) == 10


def test_irlength_from_misc_list():
    assert irlength_for(0x4ba00477) == 4
    assert irlength_for(0xfffffffe) == 12


def test_irlength_unknown():
    assert irlength_for(0x12345678) is None


def test_duplicate_idcodes_keep_first_entry():
    assert FPGA_LIST[0x010F0043] == FpgaModel("lattice", "CrosslinkNX", "LIFCL-17", 8)
    assert FPGA_LIST[0x012BB043] == FpgaModel("lattice", "MachXO3LF", "LCMX03LF-1300C", 8)
    assert FPGA_LIST[0x01111043] == FpgaModel("lattice", "ECP5", "LFE5U-12/25", 8)
    assert FPGA_LIST[0x012b5043] == FpgaModel("lattice", "MachXO2", "LCMXO2-7000HE", 8)
    assert irlength_for(0x010F0043) == 8


def test_lattice_families():
    assert FPGA_LIST[0x012e3043] == FpgaModel("lattice", "MachXO3D", "LCMX03D-9400HC", 8)
    assert all(m.irlength == 8 for m in FPGA_LIST.values() if m.manufacturer == "lattice")


def test_manufacturer_lookup():
    assert MANUFACTURERS[idcode_manufacturer_id(0x0362D093)] == "Xilinx"
    assert MANUFACTURERS[idcode_manufacturer_id(0x012e3043)] == "lattice"
    assert MANUFACTURERS[idcode_manufacturer_id(0x0100481b)] == "Gowin"


def test_version_nibble_is_zero_except_gatemate():
    nonzero = [code for code in FPGA_LIST if idcode_version(code) != 0]
    assert nonzero == [0x20000001]


def test_misc_devices_have_versions():
    assert idcode_version(0x4ba00477) == 4
    assert idcode_manufacturer_id(0x4ba00477) == idcode_manufacturer_id(0x5ba00477)


@pytest.mark.parametrize("idcode", sorted(FPGA_LIST) + sorted(MISC_DEV_LIST))
def test_fields_in_range(idcode):
    assert 0 <= idcode_part(idcode) < 0x80
    assert 0 <= idcode_manufacturer_id(idcode) < 0x800
    assert 0 <= idcode_version(idcode) < 0x10