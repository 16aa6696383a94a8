"""JTAG TAP state machine and chain handling on top of a cable interface."""

from __future__ import annotations

import abc
from enum import IntEnum

from .parts import (
    MANUFACTURERS,
    idcode_manufacturer_id,
    idcode_part,
    idcode_version,
    irlength_for,
)

__all__ = ["TapState", "JtagInterface", "UnknownDeviceError", "Jtag"]


class TapState(IntEnum):
    TEST_LOGIC_RESET = 0
    RUN_TEST_IDLE = 1
    SELECT_DR_SCAN = 2
    CAPTURE_DR = 3
    SHIFT_DR = 4
    EXIT1_DR = 5
    PAUSE_DR = 6
    EXIT2_DR = 7
    UPDATE_DR = 8
    SELECT_IR_SCAN = 9
    CAPTURE_IR = 10
    SHIFT_IR = 11
    EXIT1_IR = 12
    PAUSE_IR = 13
    EXIT2_IR = 14
    UPDATE_IR = 15
    UNKNOWN = 999


class JtagInterface(abc.ABC):
    """Low level access to a JTAG probe."""

    def __init__(self, clk_hz: int = 0):
        self._clk_hz = clk_hz

    @abc.abstractmethod
    def set_clk_freq(self, clk_hz: int) -> int:
        """Set the TCK frequency; return the frequency actually used."""

    def get_clk_freq(self) -> int:
        return self._clk_hz

    @abc.abstractmethod
    def write_tms(self, tms: bytes, length: int, flush_buffer: bool) -> int:
        """Send ``length`` TMS bits (LSB first); return the number sent."""

    @abc.abstractmethod
    def write_tdi(self, tdi: bytes, length: int, end: bool,
                  read: bool) -> bytes | None:
        """Shift ``length`` TDI bits, raising TMS with the last one if ``end``.

        Return the TDO bits read when ``read`` is true, else None.
        """

    @abc.abstractmethod
    def toggle_clk(self, tms: int, tdi: int, clk_len: int) -> int:
        """Pulse TCK ``clk_len`` times; a negative result means failure."""

    @abc.abstractmethod
    def get_buffer_size(self) -> int:
        """Internal buffer size in bytes."""

    @abc.abstractmethod
    def is_full(self) -> bool:
        """True when the internal buffer is full."""

    @abc.abstractmethod
    def flush(self) -> int:
        """Transmit the internal buffer."""


class UnknownDeviceError(RuntimeError):
    """A device in the chain answered with an IDCODE that is not known."""

    def __init__(self, idcode: int):
        self.idcode = idcode
        mfg = idcode_manufacturer_id(idcode)
        super().__init__(
            f"Unknown device with IDCODE: 0x{idcode:08x}"
            f" (manufacturer: 0x{mfg:03x} ({MANUFACTURERS.get(mfg, '')}),"
            f" part: 0x{idcode_part(idcode):02x}"
            f" vers: 0x{idcode_version(idcode):x}"
        )


_DR_STATES = frozenset({
    TapState.CAPTURE_DR, TapState.SHIFT_DR, TapState.EXIT1_DR,
    TapState.PAUSE_DR, TapState.EXIT2_DR, TapState.UPDATE_DR,
})
_IR_STATES = frozenset({
    TapState.CAPTURE_IR, TapState.SHIFT_IR, TapState.EXIT1_IR,
    TapState.PAUSE_IR, TapState.EXIT2_IR, TapState.UPDATE_IR,
})


def _step(cur: TapState, target: TapState) -> tuple[int, TapState]:
    """One TCK towards ``target``: return the TMS value and the next state."""
    S = TapState
    if cur == S.TEST_LOGIC_RESET:
        return (1, cur) if target == cur else (0, S.RUN_TEST_IDLE)
    if cur == S.RUN_TEST_IDLE:
        return (0, cur) if target == cur else (1, S.SELECT_DR_SCAN)
    if cur == S.SELECT_DR_SCAN:
        return (0, S.CAPTURE_DR) if target in _DR_STATES else (1, S.SELECT_IR_SCAN)
    if cur == S.SELECT_IR_SCAN:
        return (0, S.CAPTURE_IR) if target in _IR_STATES else (1, S.TEST_LOGIC_RESET)
    for shift, cap, ex1, pause, ex2, upd in (
        (S.SHIFT_DR, S.CAPTURE_DR, S.EXIT1_DR, S.PAUSE_DR, S.EXIT2_DR, S.UPDATE_DR),
        (S.SHIFT_IR, S.CAPTURE_IR, S.EXIT1_IR, S.PAUSE_IR, S.EXIT2_IR, S.UPDATE_IR),
    ):
        if cur == cap:
            return (0, shift) if target == shift else (1, ex1)
        if cur == shift:
            return (0, shift) if target == shift else (1, ex1)
        if cur == ex1:
            return (0, pause) if target in (pause, ex2, shift, ex1) else (1, upd)
        if cur == pause:
            return (0, pause) if target == pause else (1, ex2)
        if cur == ex2:
            return (0, shift) if target in (shift, ex1, pause) else (1, upd)
        if cur == upd:
            return (0, S.RUN_TEST_IDLE) if target == S.RUN_TEST_IDLE \
                else (1, S.SELECT_DR_SCAN)
    raise ValueError(f"cannot move from TAP state {cur!r}")


def _ones(nbits: int) -> bytes:
    return b"\xff" * ((nbits + 7) // 8)


class Jtag:
    """Drive a JTAG chain: TAP moves, IR/DR shifts and chain detection."""

    TMS_BUFFER_SIZE = 128

    def __init__(self, interface: JtagInterface, verbose: int = 0):
        self.interface = interface
        self.verbose = verbose
        self._state = TapState.RUN_TEST_IDLE
        self._tms_buffer = bytearray(self.TMS_BUFFER_SIZE)
        self._num_tms = 0
        self.device_index = 0
        self._devices: list[int] = []
        self._irlengths: list[int] = []
        self.detect_chain(5)

    @property
    def state(self) -> TapState:
        return self._state

    @property
    def devices_list(self) -> list[int]:
        """IDCODEs of the devices in the chain, in chain order."""
        return list(self._devices)

    @property
    def irlength_list(self) -> list[int]:
        return list(self._irlengths)

    @property
    def target_device_id(self) -> int:
        return self._devices[self.device_index]

    @property
    def clk_freq(self) -> int:
        return self.interface.get_clk_freq()

    @clk_freq.setter
    def clk_freq(self, clk_hz: int) -> None:
        self.interface.set_clk_freq(clk_hz)

    def detect_chain(self, max_dev: int) -> int:
        """Scan the chain for IDCODEs; return the number of devices found."""
        self._devices.clear()
        self._irlengths.clear()

        self.go_test_logic_reset()
        self.set_state(TapState.SHIFT_DR)

        for i in range(max_dev):
            rx = self.read_write(b"\xff" * 4, 32, i == max_dev - 1, read=True)
            idcode = int.from_bytes(bytes(rx or b"")[:4].ljust(4, b"\0"), "little")
            if idcode in (0, 0xFFFFFFFF):
                continue
            found = False
            # keep the version nibble of GateMate apart from Efinix T4/T8
            if idcode != 0x20000001:
                found = self._search_and_insert(idcode & 0x0FFFFFFF)
            if not found:
                found = self._search_and_insert(idcode)
            if not found:
                raise UnknownDeviceError(idcode)

        self.go_test_logic_reset()
        self.flush_tms(True)
        return len(self._devices)

    def _search_and_insert(self, idcode: int) -> bool:
        irlength = irlength_for(idcode)
        if irlength is None:
            return False
        return self.insert_first(idcode, irlength)

    def device_select(self, index: int) -> int:
        """Select the targeted device by chain index."""
        if index < 0 or index > len(self._devices):
            raise IndexError(f"device index {index} out of range")
        self.device_index = index
        return index

    def insert_first(self, device_id: int, irlength: int) -> bool:
        """Put a device at the head of the chain list."""
        self._devices.insert(0, device_id)
        self._irlengths.insert(0, irlength)
        return True

    def set_tms(self, tms: int) -> None:
        """Queue one TMS bit."""
        if self._num_tms + 1 == self.TMS_BUFFER_SIZE * 8:
            self.flush_tms(False)
        if tms:
            self._tms_buffer[self._num_tms >> 3] |= 1 << (self._num_tms & 0x7)
        self._num_tms += 1

    def flush_tms(self, flush_buffer: bool = False) -> int:
        """Send the queued TMS bits to the interface."""
        ret = 0
        if self._num_tms:
            nbytes = (self._num_tms + 7) // 8
            ret = self.interface.write_tms(bytes(self._tms_buffer[:nbytes]),
                                           self._num_tms, flush_buffer)
            self._tms_buffer = bytearray(self.TMS_BUFFER_SIZE)
            self._num_tms = 0
        elif flush_buffer:
            self.interface.flush()
        return ret

    def flush(self) -> None:
        self.flush_tms()
        self.interface.flush()

    def go_test_logic_reset(self) -> None:
        """Reach TEST_LOGIC_RESET from any state."""
        for _ in range(6):
            self.set_tms(1)
        self.flush_tms(False)
        self._state = TapState.TEST_LOGIC_RESET

    def read_write(self, tdi: bytes, length: int, last: bool,
                   read: bool = False) -> bytes | None:
        """Shift ``length`` bits; leave the shift state with the last one if asked."""
        self.flush_tms(False)
        rx = self.interface.write_tdi(bytes(tdi), length, bool(last), read)
        if last:
            self._state = (TapState.EXIT1_DR if self._state == TapState.SHIFT_DR
                           else TapState.EXIT1_IR)
        return rx if read else None

    def toggle_clk(self, count: int) -> None:
        """Pulse TCK ``count`` times, keeping TMS at the current state's level."""
        tms = 1 if self._state == TapState.TEST_LOGIC_RESET else 0
        self.flush_tms(False)
        if self.interface.toggle_clk(tms, 0, count) < 0:
            raise RuntimeError("clock toggle failed")

    def shift_dr(self, tdi: bytes, drlen: int,
                 end_state: TapState = TapState.RUN_TEST_IDLE,
                 read: bool = False) -> bytes | None:
        """Shift a data register of the selected device."""
        end_state = TapState(end_state)
        bits_after = self.device_index

        if self._state != TapState.SHIFT_DR:
            self.set_state(TapState.SHIFT_DR)
            self.flush_tms(False)
            bits_before = len(self._devices) - self.device_index - 1
            if bits_before > 0:
                self.read_write(_ones(bits_before), bits_before, False)

        rx = self.read_write(tdi, drlen,
                             bits_after == 0 and end_state != TapState.SHIFT_DR,
                             read)

        if end_state != TapState.SHIFT_DR:
            if bits_after > 0:
                self.read_write(_ones(bits_after), bits_after, True)
            self.set_state(end_state)
        return rx

    def shift_ir(self, tdi: bytes | int, irlen: int,
                 end_state: TapState = TapState.RUN_TEST_IDLE,
                 read: bool = False) -> bytes | None:
        """Shift an instruction into the selected device, bypassing the others."""
        if isinstance(tdi, int):
            if irlen > 8:
                raise ValueError("a single byte instruction cannot exceed 8 bits")
            tdi = bytes([tdi & 0xFF])
        end_state = TapState(end_state)

        bypass_after = 0
        if end_state != TapState.SHIFT_IR:
            bypass_after = sum(self._irlengths[:self.device_index])

        if self._state != TapState.SHIFT_IR:
            self.set_state(TapState.SHIFT_IR)
            self.flush_tms(False)
            bypass_before = sum(self._irlengths[self.device_index + 1:])
            if bypass_before > 0:
                self.read_write(_ones(bypass_before), bypass_before, False)

        rx = self.read_write(tdi, irlen,
                             bypass_after == 0 and end_state != TapState.SHIFT_IR,
                             read)

        if end_state != TapState.SHIFT_IR:
            if bypass_after > 0:
                self.read_write(_ones(bypass_after), bypass_after, True)
            self.set_state(end_state)
        return rx

    def set_state(self, new_state: TapState) -> None:
        """Walk the TAP state machine to ``new_state``."""
        new_state = TapState(new_state)
        if new_state == TapState.UNKNOWN:
            raise ValueError("cannot move to an unknown TAP state")
        while new_state != self._state:
            tms, self._state = _step(self._state, new_state)
            self.set_tms(tms)
        self.flush_tms(False)