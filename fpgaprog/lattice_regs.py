"""Lattice configuration commands, register bits and their descriptions."""

from __future__ import annotations

from enum import IntEnum

__all__ = [
    "LatticeFamily",
    "FlashSector",
    "FAMILY_NAMES",
    "describe_feabits",
    "describe_status",
    "parse_flash_sector",
]


class LatticeFamily(IntEnum):
    MACHXO2 = 0
    MACHXO3 = 1
    MACHXO3D = 2
    ECP5 = 3
    NEXUS = 4
    UNKNOWN = 999


class FlashSector(IntEnum):
    """Internal flash sectors (MachXO3D)."""

    UNDEFINED = 0
    CFG0 = 1
    CFG1 = 2
    UFM0 = 3
    UFM1 = 4
    UFM2 = 5
    UFM3 = 6
    FEA = 7
    PKEY = 8
    AKEY = 9
    CSEC = 10
    USEC = 11


# Family names used in the device table, mapped to the family enum.
FAMILY_NAMES: dict[str, LatticeFamily] = {
    "MachXO2": LatticeFamily.MACHXO2,
    "MachXO3LF": LatticeFamily.MACHXO3,
    "MachXO3D": LatticeFamily.MACHXO3D,
    "ECP5": LatticeFamily.ECP5,
    "CrosslinkNX": LatticeFamily.NEXUS,
    "CertusNX": LatticeFamily.NEXUS,
}

# JTAG instructions
ISC_ENABLE = 0xC6
ISC_ENABLE_FLASH_MODE = 1 << 3
ISC_ENABLE_SRAM_MODE = 0 << 3
ISC_ENABLE_TRANSPARENT = 0x74
ISC_DISABLE = 0x26
READ_DEVICE_ID_CODE = 0xE0
READ_USER_CODE = 0xC0
FLASH_ERASE = 0x0E
RESET_CFG_ADDR = 0x46
LSC_WRITE_ADDRESS = 0xB4
LSC_INIT_ADDR_UFM = 0x47
PROG_CFG_FLASH = 0x70
READ_BUSY_FLAG = 0xF0
REG_CFG_FLASH = 0x73
PROG_FEATURE_ROW = 0xE4
READ_FEATURE_ROW = 0xE7
PROG_FEABITS = 0xF8
READ_FEABITS = 0xFB
PROG_DONE = 0x5E
REFRESH = 0x79
READ_STATUS_REGISTER = 0x3C
READ_STATUS_REGISTER_1 = 0x3D
PROG_ECDSA_PUBKEY0 = 0x59
READ_ECDSA_PUBKEY0 = 0x5A
PROG_ECDSA_PUBKEY1 = 0x5B
READ_ECDSA_PUBKEY1 = 0x5C
PROG_ECDSA_PUBKEY2 = 0x61
READ_ECDSA_PUBKEY2 = 0x62
PROG_ECDSA_PUBKEY3 = 0x63
READ_ECDSA_PUBKEY3 = 0x64
ISC_NOOP = 0xFF

PUBKEY_LENGTH_BYTES = 64

# Erase areas (MachXO2/MachXO3L/LF)
FLASH_ERASE_UFM = 1 << 3
FLASH_ERASE_CFG = 1 << 2
FLASH_ERASE_FEATURE = 1 << 1
FLASH_ERASE_SRAM = 1 << 0
FLASH_ERASE_ALL = 0x0F

# Erase areas (MachXO3D)
FLASH_SEC_CFG0 = 1 << 8
FLASH_SEC_CFG1 = 1 << 9
FLASH_SEC_UFM0 = 1 << 10
FLASH_SEC_UFM1 = 1 << 11
FLASH_SEC_UFM2 = 1 << 12
FLASH_SEC_UFM3 = 1 << 13
FLASH_SEC_PKEY = 1 << 16
FLASH_SEC_AKEY = 1 << 17
FLASH_SEC_FEA = 1 << 18
FLASH_SEC_ALL = 0x7FF

# LSC_WRITE_ADDRESS sector selectors
FLASH_SET_ADDR_CFG0 = 0x00
FLASH_SET_ADDR_UFM0 = 0x01
FLASH_SET_ADDR_FEA = 0x03
FLASH_SET_ADDR_CFG1 = 0x04
FLASH_SET_ADDR_UFM1 = 0x05
FLASH_SET_ADDR_PKEY = 0x06
FLASH_SET_ADDR_UFM2 = 0x08
FLASH_SET_ADDR_UFM3 = 0x09
FLASH_SET_ADDR_AKEY = 0x0A

FLASH_UFM_ADDR_UFM0 = 1 << 10
FLASH_UFM_ADDR_UFM1 = 1 << 11
FLASH_UFM_ADDR_UFM2 = 1 << 12
FLASH_UFM_ADDR_UFM3 = 1 << 13

CHECK_BUSY_FLAG_BUSY = 1 << 7

# Status register bits
REG_STATUS_DONE = 1 << 8
REG_STATUS_ISC_EN = 1 << 9
REG_STATUS_BUSY = 1 << 12
REG_STATUS_FAIL = 1 << 13
REG_STATUS_PP_CFG = 1 << 15
REG_STATUS_PP_FSK = 1 << 16
REG_STATUS_PP_UFM = 1 << 17
REG_STATUS_AUTH_DONE = 1 << 18
REG_STATUS_PRI_BOOT_FAIL = 1 << 21
REG_STATUS_CNF_CHK_MASK = 0x0F << 23
REG_STATUS_MACHXO3D_CNF_CHK_MASK = 0x0F << 22
REG_STATUS_EXEC_ERR = 1 << 26
REG_STATUS_DEV_VERIFIED = 1 << 27

_SECTOR_NAMES = ("CFG0", "CFG1", "UFM0", "UFM1", "UFM2", "UFM3", "FEA", "PKEY")

_ERRORS = {
    0: "No err",
    1: "ID ERR",
    2: "CMD ERR",
    3: "CRC ERR",
    4: "Preamble ERR",
    5: "Abort ERR",
    6: "Overflow ERR",
    7: "SDM EOF",
}


def parse_flash_sector(name: str) -> FlashSector:
    """Return the flash sector named on the command line."""
    if name not in _SECTOR_NAMES:
        raise ValueError(f"Unknown flash sector: {name!r}")
    return FlashSector[name]


def _bit(value: int, shift: int) -> bool:
    return bool((value >> shift) & 0x01)


def describe_feabits(feabits: int) -> str:
    """Return a readable description of the FEAbits register."""
    boot_sequence = (feabits >> 12) & 0x03
    master = _bit(feabits, 11)
    if boot_sequence == 0:
        boot = ("Dual Boot from NVCM/Flash then External if there is a failure"
                if master else "Single Boot from NVCM/Flash")
    elif boot_sequence == 1 and master:
        boot = "Single Boot from External Flash"
    else:
        boot = "Error!"

    def flag(shift: int, on: str, off: str) -> str:
        return on if _bit(feabits, shift) else off

    rows = [
        ("boot mode", None),
        ("Master Mode SPI", flag(11, "enable", "disable")),
        ("I2c port", flag(10, "disable", "enable")),
        ("Slave SPI port", flag(9, "disable", "enable")),
        ("JTAG port", flag(8, "disable", "enable")),
        ("DONE", flag(7, "enable", "disable")),
        ("INITN", flag(6, "enable", "disable")),
        ("PROGRAMN", flag(5, "disable", "enable")),
        ("My_ASSP", flag(4, "enable", "disable")),
        ("Password (Flash Protect Key) Protect All", flag(3, "Enabled", "Disabled")),
        ("Password (Flash Protect Key) Protect", flag(2, "Enabled", "Disabled")),
    ]
    lines = [f"\t{'boot mode':<41}: {boot}"]
    lines += [f"\t{label:<41}: {value}" for label, value in rows[1:]]
    return "\n".join(lines) + "\n"


def describe_status(reg: int, family: LatticeFamily) -> str:
    """Return a readable description of the status register."""
    nexus = family == LatticeFamily.NEXUS
    lines = ["displayReadReg"]

    def add(cond: bool, text: str) -> None:
        if cond:
            lines.append("\t" + text)

    add(_bit(reg, 0), "TRAN Mode")
    lines.append(f"\tConfig Target Selection : {(reg >> 1) & 0x07:x}")
    add(_bit(reg, 4), "JTAG Active")
    add(_bit(reg, 5), "PWD Protect")
    add(_bit(reg, 6), "OTP")
    add(_bit(reg, 7), "Decrypt Enable")
    add(bool(reg & REG_STATUS_DONE), "Done Flag")
    add(bool(reg & REG_STATUS_ISC_EN), "ISC Enable")
    add(_bit(reg, 10), "Write Enable")
    add(_bit(reg, 11), "Read Enable")
    add(bool(reg & REG_STATUS_BUSY), "Busy Flag")
    add(bool(reg & REG_STATUS_FAIL), "Fail Flag")
    add(_bit(reg, 14), "FFEA OTP")
    add(_bit(reg, 15), "Decrypt Only")
    add(_bit(reg, 16), "PWD Enable")
    if nexus:
        add(_bit(reg, 17), "PWD All")
        add(_bit(reg, 18), "CID En")
        add(_bit(reg, 19), "internal use")
        add(_bit(reg, 21), "Encryption PreAmble")
        add(_bit(reg, 22), "Std PreAmble")
        add(_bit(reg, 23), "SPIm Fail1")
        err = (reg >> 24) & 0x0F
    else:
        add(_bit(reg, 17), "UFM OTP")
        add(_bit(reg, 18), "ASSP")
        add(_bit(reg, 19), "SDM Enable")
        add(_bit(reg, 20), "Encryption PreAmble")
        add(_bit(reg, 21), "Std PreAmble")
        add(_bit(reg, 22), "SPIm Fail1")
        err = (reg >> 23) & 0x07

    lines.append("\t" + _ERRORS.get(err, f"unknown {err:x}"))

    if nexus:
        add(_bit(reg, 28), "EXEC Error")
        add(_bit(reg, 29), "ID Error")
        add(_bit(reg, 30), "Invalid Command")
        add(_bit(reg, 31), "WDT Busy")
    else:
        add(bool(reg & REG_STATUS_EXEC_ERR), "EXEC Error")
        add(_bit(reg, 27), "Device failed to verify")
        add(_bit(reg, 28), "Invalid Command")
        add(_bit(reg, 29), "SED Error")
        add(_bit(reg, 30), "Bypass Mode")
        add(_bit(reg, 31), "FT Mode")
    return "\n".join(lines) + "\n"