"""Tables of known JTAG devices and IDCODE helpers."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "FpgaModel",
    "MiscDevice",
    "FPGA_LIST",
    "MISC_DEV_LIST",
    "MANUFACTURERS",
    "idcode_manufacturer_id",
    "idcode_part",
    "idcode_version",
    "irlength_for",
]


@dataclass(frozen=True)
class FpgaModel:
    manufacturer: str
    family: str
    model: str
    irlength: int


@dataclass(frozen=True)
class MiscDevice:
    """A device that may sit in a JTAG chain but is not programmed."""

    name: str
    irlength: int


def _first_wins(entries):
    table = {}
    for key, value in entries:
        table.setdefault(key, value)
    return table


# The highest nibble (version) is kept at 0, except where noted.
# When an IDCODE appears more than once, the first entry is the one kept.
FPGA_LIST: dict[int, FpgaModel] = _first_wins([
    (0x0a014c35, FpgaModel("anlogic", "eagle s20", "EG4S20BG256", 8)),
    (0x00004c37, FpgaModel("anlogic", "elf2", "EF2M45", 8)),

    (0x0362D093, FpgaModel("xilinx", "artix a7 35t", "xc7a35", 6)),
    (0x0362c093, FpgaModel("xilinx", "artix a7 50t", "xc7a50t", 6)),
    (0x03632093, FpgaModel("xilinx", "artix a7 75t", "xc7a75t", 6)),
    (0x03631093, FpgaModel("xilinx", "artix a7 100t", "xc7a100", 6)),
    (0x03636093, FpgaModel("xilinx", "artix a7 200t", "xc7a200", 6)),

    (0x0364c093, FpgaModel("xilinx", "kintex7", "xc7k160t", 6)),
    (0x03651093, FpgaModel("xilinx", "kintex7", "xc7k325t", 6)),

    (0x01414093, FpgaModel("xilinx", "spartan3", "xc3s200", 6)),

    (0x04001093, FpgaModel("xilinx", "spartan6", "xc6slx9", 6)),
    (0x04002093, FpgaModel("xilinx", "spartan6", "xc6slx16", 6)),
    (0x04004093, FpgaModel("xilinx", "spartan6", "xc6slx25", 6)),
    (0x04011093, FpgaModel("xilinx", "spartan6", "xc6slx100", 6)),
    (0x04008093, FpgaModel("xilinx", "spartan6", "xc6slx45", 6)),
    (0x03620093, FpgaModel("xilinx", "spartan7", "xc7s15ftgb196-1", 6)),
    (0x037c4093, FpgaModel("xilinx", "spartan7", "xc7s25", 6)),
    (0x0362f093, FpgaModel("xilinx", "spartan7", "xc7s50", 6)),

    (0x06e1c093, FpgaModel("xilinx", "xc2c", "xc2c32a", 8)),
    (0x09602093, FpgaModel("xilinx", "xc9500xl", "xc9536xl", 8)),
    (0x09604093, FpgaModel("xilinx", "xc9500xl", "xc9572xl", 8)),
    (0x09608093, FpgaModel("xilinx", "xc9500xl", "xc95144xl", 8)),
    (0x09616093, FpgaModel("xilinx", "xc9500xl", "xc95288xl", 8)),

    (0x05044093, FpgaModel("xilinx", "xcf", "xcf01s", 8)),
    (0x05045093, FpgaModel("xilinx", "xcf", "xcf02s", 8)),
    (0x05046093, FpgaModel("xilinx", "xcf", "xcf04s", 8)),

    (0x03722093, FpgaModel("xilinx", "zynq", "xc7z010", 6)),
    (0x03727093, FpgaModel("xilinx", "zynq", "xc7z020", 6)),

    # Unconfigured zynq ultrascale+ MPSoC: only the PS TAP is visible.
    (0x08e22126, FpgaModel("xilinx", "zynqmp_cfgn", "xczu2cg", 4)),

    (0x04711093, FpgaModel("xilinx", "zynqmp", "xczu2cg", 6)),

    (0x020f20dd, FpgaModel("altera", "cyclone III/IV", "EP3C16/EP4CE15", 10)),

    (0x020f30dd, FpgaModel("altera", "cyclone 10 LP", "10CL025", 10)),

    (0x02b150dd, FpgaModel("altera", "cyclone V", "5CEA2", 10)),
    (0x02b050dd, FpgaModel("altera", "cyclone V", "5CEBA4", 10)),
    (0x02d020dd, FpgaModel("altera", "cyclone V Soc", "5CSEBA6", 10)),
    (0x02d010dd, FpgaModel("altera", "cyclone V Soc", "5CSEMA4", 10)),
    (0x02d120dd, FpgaModel("altera", "cyclone V Soc", "5CSEMA5", 10)),

    (0x00000001, FpgaModel("efinix", "Trion", "T4/T8", 4)),
    (0x00210a79, FpgaModel("efinix", "Trion", "T8QFP144/T13/T20", 4)),
    (0x00220a79, FpgaModel("efinix", "Trion", "T55/T85/T120", 4)),
    (0x00240a79, FpgaModel("efinix", "Trion", "T20BGA324/T35", 4)),
    (0x00660a79, FpgaModel("efinix", "Titanium", "Ti60", 4)),
    (0x00360a79, FpgaModel("efinix", "Titanium", "Ti60ES", 4)),
    (0x00661a79, FpgaModel("efinix", "Titanium", "Ti35", 4)),

    (0x010F0043, FpgaModel("lattice", "CrosslinkNX", "LIFCL-17", 8)),
    (0x010F1043, FpgaModel("lattice", "CrosslinkNX", "LIFCL-40", 8)),

    (0x010F0043, FpgaModel("lattice", "CertusNX", "LFD2NX-17", 8)),
    (0x010F1043, FpgaModel("lattice", "CertusNX", "LFD2NX-40", 8)),

    (0x012b9043, FpgaModel("lattice", "MachXO2", "LCMXO2-640HC", 8)),
    (0x012ba043, FpgaModel("lattice", "MachXO2", "LCMXO2-1200HC", 8)),
    (0x012bd043, FpgaModel("lattice", "MachXO2", "LCMXO2-7000HC", 8)),
    (0x012b5043, FpgaModel("lattice", "MachXO2", "LCMXO2-7000HE", 8)),

    (0x012BB043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-1300C", 8)),
    (0x012B2043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-1300E", 8)),
    (0x012BB043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-2100C", 8)),
    (0x012B3043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-2100E", 8)),
    (0x012BC043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-4300C", 8)),
    (0x012B4043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-4300E", 8)),
    (0x012BD043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-6900C", 8)),
    (0x012B5043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-6900E", 8)),
    (0x012BE043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-9400C", 8)),
    (0x012B6043, FpgaModel("lattice", "MachXO3LF", "LCMX03LF-9400E", 8)),

    (0x012e3043, FpgaModel("lattice", "MachXO3D", "LCMX03D-9400HC", 8)),

    (0x01111043, FpgaModel("lattice", "ECP5", "LFE5U-12/25", 8)),
    (0x01112043, FpgaModel("lattice", "ECP5", "LFE5U-45", 8)),
    (0x01113043, FpgaModel("lattice", "ECP5", "LFE5U-85", 8)),
    (0x01111043, FpgaModel("lattice", "ECP5", "LFE5UM-25", 8)),
    (0x01112043, FpgaModel("lattice", "ECP5", "LFE5UM-45", 8)),
    (0x01113043, FpgaModel("lattice", "ECP5", "LFE5UM-85", 8)),
    (0x01111043, FpgaModel("lattice", "ECP5", "LFE5UM5G-25", 8)),
    (0x01112043, FpgaModel("lattice", "ECP5", "LFE5UM5G-45", 8)),
    (0x01113043, FpgaModel("lattice", "ECP5", "LFE5UM5G-85", 8)),

    (0x0129a043, FpgaModel("lattice", "XP2", "LFXP2-8E", 8)),

    (0x0100481b, FpgaModel("Gowin", "GW1N", "GW1N(R)-9C", 8)),
    (0x0100581b, FpgaModel("Gowin", "GW1N", "GW1NR-9", 8)),
    (0x0900281B, FpgaModel("Gowin", "GW1N", "GW1N-1", 8)),
    (0x0120681b, FpgaModel("Gowin", "GW1N", "GW1N-2", 8)),
    (0x0100381B, FpgaModel("Gowin", "GW1N", "GW1N-4", 8)),
    (0x0100681b, FpgaModel("Gowin", "GW1NZ", "GW1NZ-1", 8)),
    (0x0300181b, FpgaModel("Gowin", "GW1NS", "GW1NS-2C", 8)),
    (0x0100981b, FpgaModel("Gowin", "GW1NSR", "GW1NSR-4C", 8)),

    # Highest nibble kept to tell it apart from the Efinix T4/T8 IDCODE.
    (0x20000001, FpgaModel("colognechip", "GateMate Series", "GM1Ax", 6)),
])

MISC_DEV_LIST: dict[int, MiscDevice] = {
    0x4ba00477: MiscDevice("ARM cortex A9", 4),
    0x5ba00477: MiscDevice("ARM cortex A53", 4),
    0xfffffffe: MiscDevice("ZynqMP dummy device", 12),
}

MANUFACTURERS: dict[int, str] = {
    0x000: "CologneChip or efinix trion T4/T8",
    0x021: "lattice",
    0x049: "Xilinx",
    0x06e: "altera",
    0x093: "Xilinx",  # ZynqMP not configured
    0x40d: "Gowin",
    0x53c: "efinix",
    0x61a: "anlogic",
    0x61b: "anlogic",
}


def idcode_manufacturer_id(idcode: int) -> int:
    """JEDEC manufacturer id field of an IDCODE."""
    return (idcode >> 1) & 0x7FF


def idcode_part(idcode: int) -> int:
    """Part field of an IDCODE."""
    return (idcode >> 21) & 0x07F


def idcode_version(idcode: int) -> int:
    """Version nibble of an IDCODE."""
    return (idcode >> 28) & 0x00F


def irlength_for(idcode: int) -> int | None:
    """Instruction register length of a known device, or None if unknown."""
    idcode &= 0xFFFFFFFF
    model = FPGA_LIST.get(idcode)
    if model is not None:
        return model.irlength
    misc = MISC_DEV_LIST.get(idcode)
    if misc is not None:
        return misc.irlength
    return None