"""MachXO3D specific flows: sectored internal flash, feature row and public key."""

from __future__ import annotations

from pathlib import Path

from . import lattice_regs as regs
from .bitstream import ParseError
from .jtag import TapState
from .lattice import LatticeError
from .lattice_regs import FlashSector, describe_status

__all__ = [
    "parse_pubkey",
    "program_feature_row",
    "program_feabits",
    "program_pubkey",
    "program_int_flash",
    "program_pubkey_file",
]

_PUBKEY_MAGIC = b"\x0f\xf0"
_PUBKEY_HEADER_END = b"\xf0\x0f"
_AUTH_FUSES = 0xC4
_CFG_PAGES = 12542
_PUBKEY_PROG = (
    (regs.PROG_ECDSA_PUBKEY0, slice(48, 64)),
    (regs.PROG_ECDSA_PUBKEY1, slice(32, 48)),
    (regs.PROG_ECDSA_PUBKEY2, slice(16, 32)),
    (regs.PROG_ECDSA_PUBKEY3, slice(0, 16)),
)
_PUBKEY_READ = (
    regs.READ_ECDSA_PUBKEY0,
    regs.READ_ECDSA_PUBKEY1,
    regs.READ_ECDSA_PUBKEY2,
    regs.READ_ECDSA_PUBKEY3,
)
_UFM_BY_SECTOR = {
    FlashSector.CFG0: ("UFM0", regs.FLASH_SEC_UFM0, regs.FLASH_UFM_ADDR_UFM0, regs.FLASH_SET_ADDR_UFM0),
    FlashSector.UFM0: ("UFM0", regs.FLASH_SEC_UFM0, regs.FLASH_UFM_ADDR_UFM0, regs.FLASH_SET_ADDR_UFM0),
    FlashSector.CFG1: ("UFM1", regs.FLASH_SEC_UFM1, regs.FLASH_UFM_ADDR_UFM1, regs.FLASH_SET_ADDR_UFM1),
    FlashSector.UFM1: ("UFM1", regs.FLASH_SEC_UFM1, regs.FLASH_UFM_ADDR_UFM1, regs.FLASH_SET_ADDR_UFM1),
    FlashSector.UFM2: ("UFM2", regs.FLASH_SEC_UFM2, regs.FLASH_UFM_ADDR_UFM2, regs.FLASH_SET_ADDR_UFM2),
    FlashSector.UFM3: ("UFM3", regs.FLASH_SEC_UFM3, regs.FLASH_UFM_ADDR_UFM3, regs.FLASH_SET_ADDR_UFM3),
}


def _idle(lattice, clocks: int) -> None:
    lattice.jtag.set_state(TapState.RUN_TEST_IDLE)
    lattice.jtag.toggle_clk(clocks)


def _say(lattice, message: str) -> None:
    if not lattice.quiet:
        print(message)


def _require(lattice, ok: bool, what: str, show_status: bool = False) -> None:
    if not ok:
        message = f"{what}: FAIL"
        if show_status:
            message += "\n" + describe_status(lattice.read_status_reg(), lattice.family)
        raise LatticeError(message)
    _say(lattice, f"{what}: DONE")


def _noop_and_wait(lattice) -> bool:
    lattice.wr_rd(regs.ISC_NOOP)
    return lattice.poll_busy_flag()


def _read_pubkey(lattice) -> bytes:
    key = b""
    for cmd in _PUBKEY_READ:
        key += lattice.wr_rd(cmd, rx_len=16)
        _idle(lattice, 2)
    return key


def parse_pubkey(data) -> bytes:
    """Extract the 64-byte ECDSA public key from a .pub file's content."""
    data = bytes(data)
    if data[:2] != _PUBKEY_MAGIC:
        raise ParseError("Failed to find header in public key file")
    end = data.find(_PUBKEY_HEADER_END, 2)
    if end < 0:
        raise ParseError("public key header is not terminated")
    start = end + 2
    key = data[start:start + regs.PUBKEY_LENGTH_BYTES]
    if len(key) != regs.PUBKEY_LENGTH_BYTES:
        raise ParseError("public key is truncated")
    return key


def program_feature_row(lattice, feature_row) -> bool:
    """Write the 12-byte feature row; with verify, compare the readback."""
    feature_row = bytes(feature_row)
    tx = feature_row[:12].ljust(16, b"\0")
    if lattice.verbose > 0:
        print(f"\tProgramming feature row: [0x{feature_row[:12][::-1].hex()}]")

    lattice.wr_rd(regs.PROG_FEATURE_ROW, tx)
    _idle(lattice, 2)
    if not _noop_and_wait(lattice):
        return False

    rx = bytes(15)
    if lattice.verbose > 0 or lattice.verify:
        rx = lattice.wr_rd(regs.READ_FEATURE_ROW, rx_len=15)
        _idle(lattice, 2)
    if lattice.verbose > 0:
        print(f"\tReadback Feature Row: [0x{rx[:12][::-1].hex()}]")

    if lattice.verify:
        n = min(len(feature_row), 15)
        if rx[:n] != feature_row[:n]:
            print("\tVerify Failed...")
            return False
    return True


def program_feabits(lattice, feabits: int) -> bool:
    """Write the 32-bit FEAbits; with verify, compare the readback."""
    tx = (feabits & 0xFFFFFFFF).to_bytes(4, "little")
    if lattice.verbose > 0:
        print(f"\tProgramming FEAbits: [0x{tx[::-1].hex()}]")

    lattice.wr_rd(regs.PROG_FEABITS, tx)
    _idle(lattice, 2)
    if not _noop_and_wait(lattice):
        return False

    rx = bytes(5)
    if lattice.verbose > 0 or lattice.verify:
        rx = lattice.wr_rd(regs.READ_FEABITS, rx_len=5)
        _idle(lattice, 2)
    if lattice.verbose > 0:
        print(f"\tReadback Feabits: [0x{rx[::-1].hex()}]")

    if lattice.verify and rx[:4] != tx:
        print("\tVerify Failed...")
        return False
    return True


def program_pubkey(lattice, pubkey) -> bool:
    """Write the ECDSA public key in four 128-bit parts, last byte first."""
    pubkey = bytes(pubkey)
    if len(pubkey) != regs.PUBKEY_LENGTH_BYTES:
        raise ValueError(f"public key must be {regs.PUBKEY_LENGTH_BYTES} bytes")
    if lattice.verbose > 0:
        print(f"\tProgramming ECDSA PubKey: [{pubkey.hex()}]")

    for cmd, part in _PUBKEY_PROG:
        lattice.wr_rd(cmd, pubkey[part][::-1])
        _idle(lattice, 2)
        if not _noop_and_wait(lattice):
            return False

    rxkey = bytes(regs.PUBKEY_LENGTH_BYTES)
    if lattice.verbose > 0 or lattice.verify:
        rxkey = _read_pubkey(lattice)
    if lattice.verbose > 0:
        rev = rxkey[::-1].hex()
        print("Readback PubKey: [" + " ".join(rev[i:i + 32] for i in range(0, len(rev), 32)) + "]")

    if lattice.verify and rxkey != pubkey[::-1]:
        print("\tVerify Failed...")
        return False
    return True


def _section_target(lattice, note: str, offset: int):
    """Return (erase_op, prog_op, area_name) for a section, or None to skip it."""
    sector = lattice.flash_sector
    if note == "END CONFIG DATA":
        _say(lattice, f"Processing PADDING data (offset: {offset} (0x{offset:x}))")
        erase_op, prog_op, area = 0, 0, ""
        if sector == FlashSector.CFG0:
            prog_op = (regs.FLASH_SET_ADDR_CFG0 << 14) | offset
            area = "Padding (CFG0)"
        elif sector == FlashSector.CFG1:
            prog_op = (regs.FLASH_SET_ADDR_CFG1 << 14) | offset
            area = "Padding (CFG1)"
        if offset == 0:
            print(f"Warning: offset ({offset}) is for programming PADDING")
        return erase_op, prog_op, area

    if note == "EBR_INIT DATA":
        _say(lattice, f"Processing EBR_INIT data (offset: {offset} (0x{offset:x}))")
        if offset != 0:
            return None
        if sector == FlashSector.CFG0:
            return regs.FLASH_SEC_UFM0, regs.FLASH_UFM_ADDR_UFM0, "EBR (UFM0)"
        if sector == FlashSector.CFG1:
            return regs.FLASH_SEC_UFM1, regs.FLASH_UFM_ADDR_UFM1, "EBR (UFM1)"
        return 0, 0, ""

    if note.startswith("USER MEMORY DATA"):
        _say(lattice, f"Processing UFM data (offset: {offset} (0x{offset:x}))")
        target = _UFM_BY_SECTOR.get(sector)
        if target is None:
            return 0, 0, ""
        area, erase_sec, init_addr, set_addr = target
        if offset == 0:
            return erase_sec, init_addr, area
        return 0, (set_addr << 14) | offset, area

    _say(lattice, f"Processing CFG data (offset: {offset} (0x{offset:x}))")
    erase_op, prog_op, area = 0, 0, ""
    if sector == FlashSector.CFG0:
        erase_op = prog_op = regs.FLASH_SEC_CFG0
        area = "Data (CFG0)"
    elif sector == FlashSector.CFG1:
        erase_op = prog_op = regs.FLASH_SEC_CFG1
        area = "Data (CFG1)"
    if offset != 0:
        print(f"Warning: offset ({offset}) is not 0 for programming CFG")
    return erase_op, prog_op, area


def program_int_flash(lattice, jed) -> None:
    """Write the sections of a parsed JEDEC file into the selected flash sector."""
    lattice.wr_rd(regs.ISC_NOOP)
    _require(lattice, lattice.enable_isc(0x08), "Enable configuration", show_status=True)

    # size of a CFGx+UFMx area in 128-bit pages
    fuse_count = jed.fuse_count // 128
    if fuse_count <= 0:
        raise LatticeError("fuse count too small for a MachXO3D flash area")

    for section in jed.sections:
        data = list(section.data)
        if not data:
            continue
        offset = (section.offset // 128) % fuse_count
        if offset >= _CFG_PAGES:
            offset -= _CFG_PAGES

        target = _section_target(lattice, section.note, offset)
        if target is None:
            continue
        erase_op, prog_op, area_name = target

        if erase_op > 0:
            _require(lattice, lattice.flash_erase(erase_op), "Flash erase")

        if offset == 0:
            tx = bytes([(prog_op >> 8) & 0xFF, (prog_op >> 16) & 0xFF])
            _say(lattice, f"address (I): 0x{tx[0]:x} 0x{tx[1]:x}")
            lattice.wr_rd(regs.RESET_CFG_ADDR, tx)
        else:
            tx = bytes([prog_op & 0xFF, (prog_op >> 8) & 0xFF, (prog_op >> 16) & 0x03])
            _say(lattice, f"address (W): 0x{tx[0]:x} 0x{tx[1]:x} 0x{tx[2]:x}")
            lattice.wr_rd(regs.LSC_WRITE_ADDRESS, tx)
        _idle(lattice, 1000)

        if not lattice.flash_prog(area_name, data):
            raise LatticeError(f"Writing {area_name}: FAIL")
        if lattice.verify and not lattice.verify_data(data, False, prog_op):
            raise LatticeError("Verify: FAIL")

    cfg_sec = {FlashSector.CFG0: regs.FLASH_SEC_CFG0,
               FlashSector.CFG1: regs.FLASH_SEC_CFG1}.get(lattice.flash_sector)
    if cfg_sec is not None:
        lattice.wr_rd(regs.RESET_CFG_ADDR,
                      bytes([(cfg_sec >> 8) & 0xFF, (cfg_sec >> 16) & 0xFF]))
    _idle(lattice, 1000)

    _require(lattice, lattice.write_program_done(), "Write program Done")
    lattice.wr_rd(regs.ISC_NOOP)
    _require(lattice, lattice.disable_isc(), "Disable configuration")


def program_pubkey_file(lattice) -> None:
    """Program the public key stored in the lattice's .pub file and enable authentication."""
    try:
        content = Path(lattice.filename).read_bytes()
    except OSError as exc:
        raise LatticeError(f"Open file: {exc}") from exc
    try:
        pubkey = parse_pubkey(content)
    except ParseError as exc:
        raise LatticeError(f"Parse file: {exc}") from exc
    _say(lattice, "Parse file: DONE")
    if lattice.verbose > 0:
        hexkey = pubkey.hex()
        print("PubKey: [" + " ".join(hexkey[i:i + 32] for i in range(0, len(hexkey), 32)) + "]")

    lattice.wr_rd(regs.ISC_NOOP)
    _require(lattice, lattice.enable_isc(0x08), "Enable configuration", show_status=True)

    current = _read_pubkey(lattice)
    if lattice.verbose > 0:
        print(f"Read PubKey: [{current[::-1].hex()}]")

    same = current == pubkey[::-1]
    _say(lattice, f"PubKey Compare: {'Same' if same else 'Different'}")
    if not same:
        tx = bytes([(regs.FLASH_SEC_PKEY >> 8) & 0xFF, (regs.FLASH_SEC_PKEY >> 16) & 0xFF])
        if lattice.verbose > 0:
            print(f"Selected address (I): 0x{tx[0]:x} 0x{tx[1]:x}")
        lattice.wr_rd(regs.RESET_CFG_ADDR, tx)
        _require(lattice, lattice.flash_erase(regs.FLASH_SEC_PKEY), "Flash erase")
        _require(lattice, program_pubkey(lattice, pubkey), "Program Public Key")

    # AUTH_EN2 / AUTH_EN1 fuses, sent twice as the vendor tool does
    for _ in range(2):
        lattice.wr_rd(_AUTH_FUSES, b"\x03")
        _idle(lattice, 2)
        lattice.wr_rd(regs.ISC_NOOP)

    if lattice.verbose > 0:
        status1 = lattice.wr_rd(regs.READ_STATUS_REGISTER_1, rx_len=4)
        _idle(lattice, 2)
        mode = status1[1] & 0x03
        if mode:
            name = "ECDSA Signature Verification"
        elif status1[1] & 0x01:
            name = "HMAC Authentication"
        else:
            name = "No Authentication"
        print(f"Auth Mode: [{name}] (0x{mode:x})")

    _require(lattice, lattice.write_program_done(), "Write program Done")
    lattice.wr_rd(regs.ISC_NOOP)
    _require(lattice, lattice.disable_isc(), "Disable configuration")