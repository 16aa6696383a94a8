"""Lattice FPGA configuration over JTAG: SRAM loading and internal flash."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from . import lattice_regs as regs
from .bitstream import ParseError, reverse_byte
from .jed import JedParser
from .jtag import TapState
from .lattice_regs import FAMILY_NAMES, FlashSector, LatticeFamily, describe_status, parse_flash_sector
from .latticebit import LatticeBitParser
from .parts import FPGA_LIST
from .progress import ProgressBar

__all__ = ["ProgramType", "LatticeError", "Lattice"]


class ProgramType(Enum):
    """What the user asked to do with the device."""

    NONE = 0
    WR_SRAM = 1
    WR_FLASH = 2
    RD_FLASH = 3


class LatticeError(RuntimeError):
    """A configuration step on a Lattice device failed."""


_FLASH_EXTENSIONS = frozenset({"jed", "mcs", "fea", "pub"})
_BITSTREAM_EXTENSIONS = frozenset({"bit", "bin"})
_PRELOAD = 0x1C
_BITSTREAM_BURST = 0x7A
_CHUNK = 1024
_FLASH_LINE = 16


class Lattice:
    """Program a Lattice FPGA reached through a :class:`~fpgaprog.jtag.Jtag` chain."""

    def __init__(self, jtag, filename="", file_type="",
                 prg_type=ProgramType.NONE, flash_sector="",
                 verify=False, verbose=0):
        self.jtag = jtag
        self.filename = str(filename)
        self.verify = verify
        self.verbose = int(verbose)
        self.quiet = self.verbose < 0
        self.busy_timeout = 100_000_000

        if file_type:
            ext = file_type
        else:
            ext = Path(self.filename).suffix[1:] if self.filename else ""
        self.file_extension = ext

        self.mode = ProgramType.NONE
        if prg_type == ProgramType.RD_FLASH:
            self.mode = ProgramType.RD_FLASH
        elif ext:
            if ext in _FLASH_EXTENSIONS:
                self.mode = ProgramType.WR_FLASH
            elif ext in _BITSTREAM_EXTENSIONS:
                self.mode = (ProgramType.WR_FLASH if prg_type == ProgramType.WR_FLASH
                             else ProgramType.WR_SRAM)
            elif prg_type == ProgramType.WR_FLASH:
                self.mode = ProgramType.WR_FLASH
            else:
                raise LatticeError("incompatible file format")

        model = FPGA_LIST.get(jtag.target_device_id)
        family = FAMILY_NAMES.get(model.family) if model is not None else None
        if family is None:
            raise LatticeError("Unknown device family")
        self.family = family

        self.flash_sector = FlashSector.UNDEFINED
        if family == LatticeFamily.MACHXO3D:
            try:
                self.flash_sector = parse_flash_sector(flash_sector)
            except ValueError as exc:
                raise LatticeError(str(exc)) from exc
            self._info(f"Flash Sector: {self.flash_sector.name}")

    # helpers

    def _info(self, message: str) -> None:
        if not self.quiet:
            print(message)

    def _idle(self, clocks: int) -> None:
        self.jtag.set_state(TapState.RUN_TEST_IDLE)
        self.jtag.toggle_clk(clocks)

    def _require(self, ok: bool, what: str, show_status: bool = False) -> None:
        if not ok:
            message = f"{what}: FAIL"
            if show_status:
                message += "\n" + describe_status(self.read_status_reg(), self.family)
            raise LatticeError(message)
        self._info(f"{what}: DONE")

    def _read_file(self) -> bytes:
        try:
            return Path(self.filename).read_bytes()
        except OSError as exc:
            raise LatticeError(f"Open file: {exc}") from exc

    def _post_flash_access(self) -> None:
        self._require(self.load_configuration(), "Refresh", show_status=True)
        self.wr_rd(regs.ISC_NOOP)
        self.jtag.go_test_logic_reset()

    def _preload(self) -> None:
        self.wr_rd(_PRELOAD, b"\xff" * 26)
        self.wr_rd(regs.ISC_NOOP)

    # register access

    def wr_rd(self, cmd: int, tx: bytes = b"", rx_len: int = 0) -> bytes:
        """Load instruction ``cmd``, then shift ``tx`` and read ``rx_len`` bytes."""
        tx = bytes(tx or b"")
        xfer_len = max(len(tx), rx_len)
        self.jtag.shift_ir(bytes([cmd & 0xFF]), 8, TapState.PAUSE_IR)
        if xfer_len == 0:
            return b""
        rx = self.jtag.shift_dr(tx.ljust(xfer_len, b"\0"), 8 * xfer_len,
                                TapState.PAUSE_DR, read=rx_len > 0)
        if rx_len == 0:
            return b""
        return bytes(rx or b"")[:rx_len].ljust(rx_len, b"\0")

    def id_code(self) -> int:
        return int.from_bytes(self.wr_rd(regs.READ_DEVICE_ID_CODE, rx_len=4), "little")

    def user_code(self) -> int:
        return int.from_bytes(self.wr_rd(regs.READ_USER_CODE, rx_len=4), "little")

    def read_status_reg(self) -> int:
        rx = self.wr_rd(regs.READ_STATUS_REGISTER, bytes(4), 4)
        self._idle(1000)
        return int.from_bytes(rx, "little")

    def check_status(self, value: int, mask: int) -> bool:
        return (self.read_status_reg() & mask) == value

    def poll_busy_flag(self) -> bool:
        """Wait until the busy flag clears; False on timeout."""
        attempts = 0
        while True:
            rx = self.wr_rd(regs.READ_BUSY_FLAG, rx_len=1)[0]
            self._idle(1000)
            if self.verbose > 1:
                print(f"pollBusyFlag :{rx:02x}")
            if attempts == self.busy_timeout:
                print("timeout")
                return False
            attempts += 1
            if rx == 0:
                return True

    def enable_isc(self, flash_mode: int) -> bool:
        self.wr_rd(regs.ISC_ENABLE, bytes([flash_mode & 0xFF]))
        self._idle(1000)
        if not self.poll_busy_flag():
            return False
        return self.check_status(regs.REG_STATUS_ISC_EN, regs.REG_STATUS_ISC_EN)

    def disable_isc(self) -> bool:
        self.wr_rd(regs.ISC_DISABLE)
        self._idle(1000)
        if not self.poll_busy_flag():
            return False
        return self.check_status(0, regs.REG_STATUS_ISC_EN)

    def flash_erase(self, mask: int) -> bool:
        if self.family == LatticeFamily.MACHXO3D:
            tx = bytes([(mask >> 8) & 0xFF, (mask >> 16) & 0xFF])
        else:
            tx = bytes([mask & 0xFF])
        self.wr_rd(regs.FLASH_ERASE, tx)
        self._idle(1000)
        if not self.poll_busy_flag():
            return False
        return self.check_status(0, regs.REG_STATUS_FAIL)

    def flash_prog(self, name: str, data) -> bool:
        """Write 16-byte flash lines one after another."""
        lines = list(data)
        progress = ProgressBar(f"Writing {name}", len(lines), 50, self.quiet)
        for index, line in enumerate(lines):
            self.wr_rd(regs.PROG_CFG_FLASH, bytes(line[:_FLASH_LINE]).ljust(_FLASH_LINE, b"\0"))
            self._idle(1000)
            progress.display(index)
            if not self.poll_busy_flag():
                return False
        progress.done()
        return True

    def verify_data(self, data, unlock: bool = False, flash_area: int = 0) -> bool:
        """Read flash lines back and compare them with ``data``."""
        lines = list(data)
        if unlock:
            self.enable_isc(0x08)
        if self.family == LatticeFamily.MACHXO3D:
            self.wr_rd(regs.RESET_CFG_ADDR,
                       bytes([(flash_area >> 8) & 0xFF, (flash_area >> 16) & 0xFF]))
        else:
            self.wr_rd(regs.RESET_CFG_ADDR)
        self._idle(1000)

        self.jtag.shift_ir(bytes([regs.REG_CFG_FLASH]), 8, TapState.PAUSE_IR)

        failure = False
        progress = ProgressBar("Verifying", len(lines), 50, self.quiet)
        for index, line in enumerate(lines):
            self._idle(2)
            rx = self.jtag.shift_dr(bytes(_FLASH_LINE), _FLASH_LINE * 8,
                                    TapState.PAUSE_DR, read=True)
            rx = bytes(rx or b"").ljust(max(len(line), _FLASH_LINE), b"\0")
            for i, expected in enumerate(bytes(line)):
                if rx[i] != expected:
                    print(f"{index:3d} {i:3d} {rx[i]:02x} -> {expected:02x}")
                    failure = True
            if failure:
                print("Verify Failure")
                break
            progress.display(index)
        if unlock:
            self.disable_isc()

        if failure:
            progress.fail()
        else:
            progress.done()
        return not failure

    def read_features_row(self) -> int:
        rx = self.wr_rd(regs.READ_FEATURE_ROW, bytes(8), 8)
        return int.from_bytes(rx, "little")

    def read_feabits(self) -> int:
        rx = self.wr_rd(regs.READ_FEABITS, rx_len=2)
        self._idle(1000)
        return int.from_bytes(rx, "little")

    def write_features_row(self, features: int, verify: bool) -> bool:
        self.wr_rd(regs.PROG_FEATURE_ROW, (features & 0xFFFFFFFFFFFFFFFF).to_bytes(8, "little"))
        self._idle(1000)
        if not self.poll_busy_flag():
            return False
        if verify:
            return features == self.read_features_row()
        return True

    def write_feabits(self, feabits: int, verify: bool) -> bool:
        self.wr_rd(regs.PROG_FEABITS, (feabits & 0xFFFF).to_bytes(2, "little"))
        self._idle(1000)
        if not self.poll_busy_flag():
            return False
        if verify:
            return feabits == self.read_feabits()
        return True

    def write_program_done(self) -> bool:
        self.wr_rd(regs.PROG_DONE)
        self._idle(1000)
        if not self.poll_busy_flag():
            return False
        return self.check_status(regs.REG_STATUS_DONE, regs.REG_STATUS_DONE)

    def load_configuration(self) -> bool:
        self.wr_rd(regs.REFRESH)
        self._idle(1000)
        if not self.poll_busy_flag():
            return False
        return self.check_status(regs.REG_STATUS_DONE, regs.REG_STATUS_DONE)

    def clear_sram(self) -> bool:
        """Erase the SRAM configuration; False when a step fails."""
        self._preload()
        if not self.enable_isc(0x00):
            self._info("Enable configuration: FAIL")
            self._info(describe_status(self.read_status_reg(), self.family))
            return False
        self._info("Enable configuration: DONE")

        erase_op = 0 if self.family == LatticeFamily.MACHXO3D else regs.FLASH_ERASE_SRAM
        if not self.flash_erase(erase_op):
            self._info("SRAM erase: FAIL")
            self._info(describe_status(self.read_status_reg(), self.family))
            return False
        self._info("SRAM erase: DONE")
        return self.disable_isc()

    # programming flows

    def program_mem(self) -> None:
        """Load a .bit file into the SRAM configuration."""
        bit = LatticeBitParser(self._read_file(), self.verbose > 0)
        try:
            bit.parse()
            bit_idcode = int(bit.get_header_value("idcode"), 16)
        except (ParseError, KeyError, ValueError) as exc:
            raise LatticeError(f"Parse file: {exc}") from exc
        self._info("Parse file: DONE")

        idcode = self.id_code()
        if idcode != bit_idcode:
            raise LatticeError(
                "mismatch between target's idcode and bitstream idcode\n"
                f"\tbitstream has 0x{bit_idcode:08X} hardware requires 0x{idcode:08x}")
        if self.verbose > 0:
            print(f"IDCode : {idcode:x}")
            print(describe_status(self.read_status_reg(), self.family))

        self._preload()
        self._require(self.enable_isc(0x00), "Enable configuration", show_status=True)
        self._require(self.flash_erase(regs.FLASH_ERASE_SRAM), "SRAM erase", show_status=True)

        self.wr_rd(regs.RESET_CFG_ADDR)
        self._idle(1000)

        data = bytes(bit.data)
        length = bit.bit_length // 8
        self.wr_rd(_BITSTREAM_BURST)
        self._idle(2)

        progress = ProgressBar("Loading", length, 50, self.quiet)
        for start in range(0, length, _CHUNK):
            progress.display(start)
            chunk = data[start:start + _CHUNK]
            next_state = (TapState.RUN_TEST_IDLE if length < start + _CHUNK
                          else TapState.SHIFT_DR)
            self.jtag.shift_dr(bytes(reverse_byte(b) for b in chunk),
                               len(chunk) * 8, next_state)

        if self.family == LatticeFamily.MACHXO3D:
            status_mask = regs.REG_STATUS_MACHXO3D_CNF_CHK_MASK
        else:
            status_mask = regs.REG_STATUS_CNF_CHK_MASK
        if self.check_status(0, status_mask):
            progress.done()
        else:
            progress.fail()
            raise LatticeError("Loading: FAIL\n"
                               + describe_status(self.read_status_reg(), self.family))

        self.wr_rd(regs.ISC_NOOP)
        if self.verbose > 0:
            print(f"userCode: {self.user_code():08x}")
        self.wr_rd(regs.ISC_NOOP)
        self._require(self.disable_isc(), "Disable configuration", show_status=True)
        if self.verbose > 0:
            print(describe_status(self.read_status_reg(), self.family))
        self.wr_rd(regs.ISC_NOOP)
        self.jtag.go_test_logic_reset()

    def program_int_flash(self, jed) -> None:
        """Write the sections of a parsed JEDEC file into internal flash."""
        self.wr_rd(regs.ISC_NOOP)
        self._require(self.enable_isc(0x08), "Enable configuration", show_status=True)

        cfg_data: list[bytes] = []
        ebr_data: list[bytes] = []
        for section in jed.sections:
            if section.note in ("TAG DATA", "END CONFIG DATA"):
                # user flash and padding areas are not written here
                continue
            if section.note == "EBR_INIT DATA":
                ebr_data = list(section.data)
            else:
                cfg_data = list(section.data)

        erase_mode = regs.FLASH_ERASE_CFG
        if jed.features_row != self.read_features_row() or jed.feabits != self.read_feabits():
            erase_mode |= regs.FLASH_ERASE_FEATURE

        self._require(self.flash_erase(erase_mode), "Flash erase")

        self.wr_rd(regs.RESET_CFG_ADDR)
        self._idle(1000)

        if not self.flash_prog("data", cfg_data):
            raise LatticeError("Writing data: FAIL")
        if ebr_data and not self.flash_prog("EBR", ebr_data):
            raise LatticeError("Writing EBR: FAIL")
        if self.verify and not self.verify_data(cfg_data):
            raise LatticeError("Verify: FAIL")

        self.wr_rd(regs.RESET_CFG_ADDR)
        self._idle(1000)

        if erase_mode & regs.FLASH_ERASE_FEATURE:
            self._require(self.write_features_row(jed.features_row, True),
                          "Program features Row")
            self._require(self.write_feabits(jed.feabits, True), "Program feabits")

        self._require(self.write_program_done(), "Write program Done")
        self.wr_rd(regs.ISC_NOOP)
        self._require(self.disable_isc(), "Disable configuration")

    def program_flash(self) -> None:
        """Program the internal flash from the file given at construction."""
        if self.verbose > 0:
            print(f"IDCode : {self.id_code():x}")
            print(describe_status(self.read_status_reg(), self.family))

        ext = self.file_extension
        if ext == "jed":
            jed = JedParser(self._read_file(), self.verbose > 0)
            try:
                jed.parse()
            except ParseError as exc:
                raise LatticeError(f"Parse file: {exc}") from exc
            self._info("Parse file: DONE")
            if self.verbose > 0:
                print(jed.header_text())

            self.clear_sram()
            try:
                if self.family == LatticeFamily.MACHXO3D:
                    from . import machxo3d
                    machxo3d.program_int_flash(self, jed)
                else:
                    self.program_int_flash(jed)
            finally:
                self._post_flash_access()
        elif ext == "pub":
            self.clear_sram()
            from . import machxo3d
            machxo3d.program_pubkey_file(self)
        else:
            raise LatticeError(f"unsupported file type for internal flash: {ext!r}")

    def program(self) -> None:
        """Run the operation selected at construction."""
        if self.mode == ProgramType.WR_FLASH:
            self.program_flash()
        elif self.mode == ProgramType.WR_SRAM:
            self.program_mem()

    # SPI flash access through the FPGA

    def spi_put(self, cmd, tx=b"", rx_len=0) -> bytes:
        """Send an SPI command (or raw bytes when ``cmd`` is None); return the reply."""
        tx = bytes(tx or b"")
        payload = bytes(reverse_byte(b) for b in tx.ljust(rx_len, b"\0"))
        head = b"" if cmd is None else bytes([reverse_byte(cmd)])
        jtx = head + payload
        rx = self.jtag.shift_dr(jtx, 8 * len(jtx), TapState.RUN_TEST_IDLE,
                                read=rx_len > 0)
        if rx_len == 0:
            return b""
        reply = bytes(rx or b"")[len(head):len(head) + rx_len].ljust(rx_len, b"\0")
        return bytes(reverse_byte(b) for b in reply)

    def spi_wait(self, cmd, mask, cond, timeout) -> None:
        """Poll an SPI status register until ``value & mask == cond``."""
        self.jtag.shift_dr(bytes([reverse_byte(cmd)]), 8, TapState.SHIFT_DR)
        count = 0
        while True:
            rx = bytes(self.jtag.shift_dr(b"\0", 8, TapState.SHIFT_DR, read=True) or b"\0")
            value = reverse_byte(rx[0])
            count += 1
            if count == timeout:
                print(f"timeout: {value:x} {rx[0]:x} {count}")
                break
            if self.verbose > 1:
                print(f"{value:x} {mask:x} {cond:x} {count}")
            if (value & mask) == cond:
                break
        self.jtag.shift_dr(b"\0", 8, TapState.RUN_TEST_IDLE, read=True)
        if count == timeout:
            raise TimeoutError("wait: Error")