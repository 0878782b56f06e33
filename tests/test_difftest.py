import logging

import pytest

from nemukit.difftest import (
    MTU,
    DifftestError,
    Direction,
    Isa,
    QemuRef,
    check_reg,
    decode_regs,
    encode_mem_write,
    encode_set_regs,
    qemu_command,
)


class FakeConn:
    def __init__(self, regs=b"", mem_reply=b"OK", set_reply=b"OK"):
        self.regs = bytes(regs)
        self.mem_reply = mem_reply
        self.set_reply = set_reply
        self.sent = []
        self.pending = []
        self.closed = False

    def send(self, payload):
        self.sent.append(payload)
        if payload == b"g":
            self.pending.append(self.regs.hex().encode())
        elif payload.startswith(b"M"):
            self.pending.append(self.mem_reply)
        elif payload.startswith(b"G"):
            self.regs = bytes.fromhex(payload[1:].decode())
            self.pending.append(self.set_reply)
        else:
            self.pending.append(b"T05")

    def recv(self):
        return self.pending.pop(0)

    def close(self):
        self.closed = True


def test_qemu_command_riscv32():
    assert qemu_command(Isa.RISCV32, 1234) == [
        "qemu-system-riscv32", "-bios", "none", "-S", "-gdb", "tcp::1234",
        "-nographic", "-serial", "none", "-monitor", "none",
    ]


def test_qemu_command_mips_uses_home():
    cmd = qemu_command(Isa.MIPS32, 25000, "/opt/nemu")
    assert cmd[0] == "qemu-system-mipsel"
    assert "/opt/nemu/resource/mips-elf/mips.dummy" in cmd
    assert cmd[cmd.index("-gdb") + 1] == "tcp::25000"


def test_isa_from_name():
    assert Isa("x86").qemu_binary == "qemu-system-i386"
    assert Isa.RISCV64.is64 and not Isa.RISCV32.is64


def test_encode_mem_write():
    assert encode_mem_write(0x80000000, b"\x12\xab") == b"M0x80000000,2:12ab"


def test_encode_set_regs():
    assert encode_set_regs(b"\x01\xff") == b"G01ff"


def test_decode_regs_little_endian_word():
    assert decode_regs(b"78563412") == b"\x78\x56\x34\x12"


def test_decode_regs_round_trip():
    raw = bytes(range(40))
    assert decode_regs(raw.hex().encode()) == raw


def test_check_reg_equal():
    assert check_reg("pc", 0x80000000, 5, 5) is True


def test_check_reg_mismatch_logs(caplog):
    with caplog.at_level(logging.INFO, logger="nemukit.difftest"):
        assert check_reg("a0", 0x80000000, 1, 2) is False
    assert "a0 is different" in caplog.text
    assert "pc = 0x80000000" in caplog.text


def test_memcpy_splits_by_mtu():
    conn = FakeConn()
    ref = QemuRef(conn, Isa.RISCV32)
    data = bytes(i & 0xFF for i in range(2 * MTU + 1))
    ref.memcpy(0x80000000, data)
    assert conn.sent == [
        encode_mem_write(0x80000000, data[:MTU]),
        encode_mem_write(0x80000000 + MTU, data[MTU:2 * MTU]),
        encode_mem_write(0x80000000 + 2 * MTU, data[2 * MTU:]),
    ]


def test_memcpy_failure_raises():
    ref = QemuRef(FakeConn(mem_reply=b"E01"), Isa.RISCV32)
    with pytest.raises(DifftestError):
        ref.memcpy(0, b"\x00")


def test_get_regs_padded_to_block():
    conn = FakeConn(regs=b"\x01\x02\x03\x04")
    regs = QemuRef(conn, Isa.RISCV32).get_regs()
    assert len(regs) == Isa.RISCV32.gdb_regs_size
    assert regs[:4] == b"\x01\x02\x03\x04"
    assert set(regs[4:]) == {0}


def test_regcpy_to_dut():
    block = bytes(i & 0xFF for i in range(Isa.RISCV32.gdb_regs_size))
    ref = QemuRef(FakeConn(regs=block), Isa.RISCV32)
    dut = bytearray(Isa.RISCV32.reg_size)
    ref.regcpy(dut, Direction.TO_DUT)
    assert bytes(dut) == block[:Isa.RISCV32.reg_size]


def test_regcpy_to_ref_keeps_tail():
    isa = Isa.RISCV32
    block = bytes(0xAA for _ in range(isa.gdb_regs_size))
    conn = FakeConn(regs=block)
    ref = QemuRef(conn, isa)
    dut = bytearray(range(isa.reg_size))
    ref.regcpy(dut, Direction.TO_REF)
    assert conn.regs[:isa.reg_size] == bytes(dut)
    assert conn.regs[isa.reg_size:] == block[isa.reg_size:]


def test_regcpy_short_buffer():
    ref = QemuRef(FakeConn(), Isa.RISCV32)
    with pytest.raises(ValueError):
        ref.regcpy(bytearray(4), Direction.TO_DUT)


def test_exec_steps():
    conn = FakeConn()
    QemuRef(conn, Isa.RISCV32).exec(3)
    assert conn.sent == [b"vCont;s:1"] * 3


def test_init_isa_non_x86_is_noop():
    conn = FakeConn()
    QemuRef(conn, Isa.RISCV64).init_isa()
    assert conn.sent == []


def test_init_isa_x86():
    block = bytes([0x11]) * Isa.X86.gdb_regs_size
    conn = FakeConn(regs=block)
    QemuRef(conn, Isa.X86).init_isa()
    assert conn.sent[0].startswith(b"M0x7c00,")
    assert conn.sent[1] == b"g"
    assert conn.sent.count(b"vCont;s:1") == 20
    assert int.from_bytes(conn.regs[32:36], "little") == 0x7C00
    assert conn.regs[40:44] == bytes(4)
    assert conn.regs[:32] == block[:32]


def test_init_isa_x86_set_failure():
    conn = FakeConn(regs=bytes(Isa.X86.gdb_regs_size), set_reply=b"E22")
    with pytest.raises(DifftestError):
        QemuRef(conn, Isa.X86).init_isa()


def test_raise_intr_unsupported():
    with pytest.raises(DifftestError):
        QemuRef(FakeConn(), Isa.RISCV32).raise_intr(3)


def test_close_closes_connection():
    conn = FakeConn()
    ref = QemuRef(conn, Isa.RISCV32)
    ref.close()
    ref.close()
    assert conn.closed is True