"""Z80 CPU state: registers, flag lookup tables, interrupt and cycle bookkeeping."""

from __future__ import annotations

import enum
import functools
from dataclasses import dataclass

IGNORE_INT = -1
NMI_INT = -2
IRQ_INT = -1000


class Flag(enum.IntFlag):
    """Bits of the F register."""

    C = 0x01
    N = 0x02
    P = 0x04
    V = 0x04
    X = 0x08
    H = 0x10
    Y = 0x20
    Z = 0x40
    S = 0x80


IFF = int(Flag.P)


class Status(enum.IntFlag):
    """Bits of the CPU status byte."""

    HAS_INT = 0x04
    HAS_NMI = 0x08
    RUNNING = 0x10
    HALTED = 0x20
    DISABLE = 0x40
    FAULTED = 0x80


@dataclass(frozen=True)
class FlagTables:
    """Precomputed flag results indexed by an 8-bit value."""

    szxy: tuple[int, ...]
    szxyp: tuple[int, ...]
    szxy_bit: tuple[int, ...]
    szxyhv_inc: tuple[int, ...]
    szxyhv_dec: tuple[int, ...]


@functools.lru_cache(maxsize=None)
def flag_tables() -> FlagTables:
    """Build the sign/zero/parity/half-carry/overflow lookup tables."""
    sxy = Flag.S | Flag.Y | Flag.X
    szxy, szxyp, szxy_bit, inc, dec = [], [], [], [], []
    for value in range(256):
        base = value & sxy
        plain = base | (Flag.Z if value == 0 else 0)
        szxy.append(int(plain))

        bit = base | ((Flag.Z | Flag.P) if value == 0 else 0)
        szxy_bit.append(int(bit))

        parity = plain | (Flag.P if bin(value).count("1") % 2 == 0 else 0)
        szxyp.append(int(parity))

        up = plain
        if value == 0x80:
            up |= Flag.V
        if value & 0x0F == 0x00:
            up |= Flag.H
        inc.append(int(up))

        down = plain | Flag.N
        if value == 0x7F:
            down |= Flag.V
        if value & 0x0F == 0x0F:
            down |= Flag.H
        dec.append(int(down))
    return FlagTables(tuple(szxy), tuple(szxyp), tuple(szxy_bit), tuple(inc), tuple(dec))


class _Register:
    """Attribute that keeps its value within a bit mask."""

    def __init__(self, mask: int) -> None:
        self.mask = mask

    def __set_name__(self, owner: type, name: str) -> None:
        self.slot = "_" + name

    def __get__(self, obj: object, objtype: type | None = None):
        if obj is None:
            return self
        return getattr(obj, self.slot)

    def __set__(self, obj: object, value: int) -> None:
        setattr(obj, self.slot, int(value) & self.mask)


class Z80Cpu:
    """Register file and control state of a Z80 core."""

    a = _Register(0xFF)
    f = _Register(0xFF)
    a2 = _Register(0xFF)
    f2 = _Register(0xFF)
    bc = _Register(0xFFFF)
    de = _Register(0xFFFF)
    hl = _Register(0xFFFF)
    bc2 = _Register(0xFFFF)
    de2 = _Register(0xFFFF)
    hl2 = _Register(0xFFFF)
    ix = _Register(0xFFFF)
    iy = _Register(0xFFFF)
    sp = _Register(0xFFFF)
    pc = _Register(0xFFFF)
    i = _Register(0xFF)
    im = _Register(0x03)
    int_vect = _Register(0xFF)

    def __init__(self) -> None:
        self.tables = flag_tables()
        self.cycle_sup = 0
        self._clear_state()

    def _clear_state(self) -> None:
        for name in ("a", "f", "a2", "f2", "bc", "de", "hl", "bc2", "de2", "hl2",
                     "ix", "iy", "sp", "pc", "i", "im", "int_vect"):
            setattr(self, name, 0)
        self._r = 0
        self.r2 = 0
        self.iff1 = False
        self.iff2 = False
        self.status = 0
        self.base_pc = 0
        self.cycle_io = 0
        self.cycle_to_do = 0

    @property
    def af(self) -> int:
        return self.f | (self.a << 8)

    @af.setter
    def af(self, value: int) -> None:
        self.f = value
        self.a = value >> 8

    @property
    def af2(self) -> int:
        return self.f2 | (self.a2 << 8)

    @af2.setter
    def af2(self, value: int) -> None:
        self.f2 = value
        self.a2 = value >> 8

    @property
    def r(self) -> int:
        return self._r

    @r.setter
    def r(self, value: int) -> None:
        self._r = value & 0xFF
        self.r2 = value & 0x80

    @property
    def iff(self) -> int:
        return (1 if self.iff1 else 0) | (2 if self.iff2 else 0)

    @iff.setter
    def iff(self, value: int) -> None:
        self.iff1 = bool(value & 1)
        self.iff2 = bool(value & 2)

    def reset(self) -> int:
        """Reset registers to power-on values; returns the status byte."""
        self._clear_state()
        self.pc = 0
        self.ix = 0xFFFF
        self.iy = 0xFFFF
        self.sp = 0xFFFE
        self.af = 0xFFFF
        return self.status

    def _set_status(self, flag: Status) -> None:
        self.status |= int(flag)

    def _clear_status(self, flag: Status) -> None:
        self.status &= ~int(flag) & 0xFF

    def enable(self) -> None:
        self._clear_status(Status.DISABLE)

    def disable(self) -> None:
        self._set_status(Status.DISABLE)

    def set_irq(self, vector: int) -> None:
        """Raise a maskable interrupt with the given vector byte."""
        self.int_vect = vector
        self._set_status(Status.HAS_INT)
        self.cycle_sup = self.cycle_io
        self.cycle_io = 0

    def set_nmi(self) -> None:
        self._set_status(Status.HAS_NMI)
        self.cycle_sup = self.cycle_io
        self.cycle_io = 0

    def clear_irq(self) -> None:
        self._clear_status(Status.HAS_INT)

    def clear_nmi(self) -> None:
        self._clear_status(Status.HAS_NMI)

    @property
    def running(self) -> bool:
        return bool(self.status & Status.RUNNING)

    def cycles_to_do(self) -> int:
        return self.cycle_to_do if self.running else 0

    def cycles_remaining(self) -> int:
        return self.cycle_io + self.cycle_sup if self.running else 0

    def cycles_done(self) -> int:
        if not self.running:
            return 0
        return self.cycle_to_do - (self.cycle_io + self.cycle_sup)

    def end_execute(self) -> None:
        """Stop the current run, keeping only the cycles actually spent."""
        self.cycle_to_do -= self.cycle_io + self.cycle_sup
        self.cycle_io = 0
        self.cycle_sup = 0

    def waste_cycles(self, cycles: int) -> None:
        self.cycle_io -= cycles

    def cause_interrupt(self, kind: int) -> None:
        """Raise an NMI for NMI_INT, an IRQ for a non-negative vector; ignore others."""
        if kind == NMI_INT:
            self.set_nmi()
        elif kind >= 0:
            self.set_irq(kind & 0xFF)

    def clear_pending_interrupts(self) -> None:
        self.clear_irq()
        self.clear_nmi()