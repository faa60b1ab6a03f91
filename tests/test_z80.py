import pytest

from pocketrace.z80 import (
    IGNORE_INT,
    IRQ_INT,
    NMI_INT,
    Flag,
    Status,
    Z80Cpu,
    flag_tables,
)


@pytest.fixture
def cpu():
    return Z80Cpu()


def test_reset_values(cpu):
    cpu.bc = 0x1234
    cpu.cycle_sup = 7
    assert cpu.reset() == 0
    assert cpu.pc == 0
    assert cpu.ix == 0xFFFF
    assert cpu.iy == 0xFFFF
    assert cpu.sp == 0xFFFE
    assert cpu.af == 0xFFFF
    assert cpu.bc == 0
    assert cpu.cycle_sup == 7


def test_zero_flag_tables():
    tables = flag_tables()
    assert tables.szxy[0] == Flag.Z
    assert tables.szxyp[0] == Flag.Z | Flag.P
    assert tables.szxy_bit[0] == Flag.Z | Flag.P


def test_inc_dec_overflow_entries():
    tables = flag_tables()
    assert tables.szxyhv_inc[0x80] == 0x94
    assert (tables.szxyhv_inc[0x80] & Flag.V) == Flag.V
    assert (tables.szxyhv_inc[0x80] & Flag.S) == Flag.S
    assert (tables.szxyhv_inc[0x80] & Flag.H) == Flag.H
    assert tables.szxyhv_dec[0x7F] == 0x3E
    assert (tables.szxyhv_dec[0x7F] & Flag.V) == Flag.V
    assert (tables.szxyhv_dec[0x7F] & Flag.H) == Flag.H
    assert (tables.szxyhv_dec[0x7F] & Flag.N) == Flag.N


def test_flag_table_invariants():
    tables = flag_tables()
    for value in range(256):
        assert tables.szxy[value] & (Flag.S | Flag.Y | Flag.X) == value & (Flag.S | Flag.Y | Flag.X)
        assert bool(tables.szxy[value] & Flag.Z) == (value == 0)
        assert tables.szxyhv_dec[value] & Flag.N
        assert not tables.szxyhv_inc[value] & Flag.N
        assert tables.szxyp[value] & ~Flag.P == tables.szxy[value]


@pytest.mark.parametrize(
    "value, expected",
    [
        (0x01, 0x00),
        (0x03, 0x04),
        (0x07, 0x00),
        (0xFF, 0xAC),
    ],
)
def test_parity_flag_matches_bit_count(value, expected):
    tables = flag_tables()
    assert tables.szxyp[value] == expected


def test_tables_shared_between_cpus():
    first = Z80Cpu().tables
    assert first.szxy[0] == Flag.Z
    assert first is Z80Cpu().tables


def test_af_pairs_split(cpu):
    cpu.af = 0x1234
    assert cpu.a == 0x12
    assert cpu.f == 0x34
    cpu.af2 = 0xABCD
    assert cpu.af2 == 0xABCD
    assert cpu.af == 0x1234


def test_sixteen_bit_registers_wrap(cpu):
    cpu.bc = 0x10000 + 0x55
    assert cpu.bc == 0x55


def test_r_register_keeps_high_bit(cpu):
    cpu.r = 0x1F3
    assert cpu.r == 0xF3
    assert cpu.r2 == 0x80


def test_iff_round_trip(cpu):
    for value in range(4):
        cpu.iff = value
        assert cpu.iff == value


def test_im_and_i_masked(cpu):
    cpu.im = 6
    cpu.i = 0x1AB
    assert cpu.im == 6 & 3
    assert cpu.i == 0xAB


def test_enable_disable(cpu):
    cpu.disable()
    assert (cpu.status & Status.DISABLE) == Status.DISABLE
    cpu.enable()
    assert (cpu.status & Status.DISABLE) == 0


def test_set_irq_moves_cycles(cpu):
    cpu.cycle_io = 40
    cpu.set_irq(0x1FF)
    assert cpu.int_vect == 0xFF
    assert cpu.status & Status.HAS_INT
    assert cpu.cycle_sup == 40
    assert cpu.cycle_io == 0


def test_set_nmi_and_clear(cpu):
    cpu.cycle_io = 12
    cpu.set_nmi()
    assert cpu.status & Status.HAS_NMI
    assert cpu.cycle_sup == 12
    cpu.clear_nmi()
    assert not cpu.status & Status.HAS_NMI


def test_cause_interrupt_kinds(cpu):
    cpu.cause_interrupt(IGNORE_INT)
    cpu.cause_interrupt(IRQ_INT)
    assert cpu.status == 0
    cpu.cause_interrupt(NMI_INT)
    assert cpu.status & Status.HAS_NMI
    cpu.cause_interrupt(0x38)
    assert cpu.status & Status.HAS_INT
    assert cpu.int_vect == 0x38
    cpu.clear_pending_interrupts()
    assert not cpu.status & (Status.HAS_INT | Status.HAS_NMI)


def test_cycle_queries_zero_when_not_running(cpu):
    cpu.cycle_to_do = 100
    cpu.cycle_io = 30
    assert cpu.cycles_to_do() == 0
    assert cpu.cycles_remaining() == 0
    assert cpu.cycles_done() == 0


def test_cycle_accounting_when_running(cpu):
    cpu.status |= Status.RUNNING
    cpu.cycle_to_do = 100
    cpu.cycle_io = 30
    cpu.cycle_sup = 5
    assert cpu.cycles_to_do() == 100
    assert cpu.cycles_remaining() == 30 + 5
    assert cpu.cycles_done() + cpu.cycles_remaining() == cpu.cycles_to_do()


def test_waste_and_end_execute(cpu):
    cpu.status |= Status.RUNNING
    cpu.cycle_to_do = 100
    cpu.cycle_io = 30
    cpu.waste_cycles(10)
    assert cpu.cycle_io == 20
    done = cpu.cycles_done()
    cpu.end_execute()
    assert cpu.cycle_to_do == done
    assert cpu.cycle_io == 0
    assert cpu.cycle_sup == 0