"""Differential testing against a QEMU reference driven over the GDB remote protocol."""

from __future__ import annotations

import atexit
import enum
import logging
import subprocess
import time
from typing import Callable, Optional

from .gdbproto import GdbConnection, gdb_decode_hex_str, hex_encode

log = logging.getLogger(__name__)

MTU = 1500
_WORD_HEX_CHARS = 8
_GDB_ARRAY_WORDS = 77

# x86 real-mode boot code that loads a flat GDT and enters protected mode.
_X86_MBR = bytes([
    # start16:
    0xfa,
    0x31, 0xc0,
    0x8e, 0xd8,
    0x8e, 0xc0,
    0x8e, 0xd0,
    0x0f, 0x01, 0x16, 0x44, 0x7c,
    0x0f, 0x20, 0xc0,
    0x66, 0x83, 0xc8, 0x01,
    0x0f, 0x22, 0xc0,
    0xea, 0x1d, 0x7c, 0x08, 0x00,
    # start32:
    0x66, 0xb8, 0x10, 0x00,
    0x8e, 0xd8,
    0x8e, 0xc0,
    0x8e, 0xd0,
    0xeb, 0xfe,
    0x8d, 0x76, 0x00,
    # GDT
    0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,
    0xff, 0xff, 0x00, 0x00, 0x00, 0x9a, 0xcf, 0x00,
    0xff, 0xff, 0x00, 0x00, 0x00, 0x92, 0xcf, 0x00,
    # GDT descriptor
    0x17, 0x00, 0x2c, 0x7c, 0x00, 0x00,
])
_X86_MBR_ADDR = 0x7C00
_X86_EIP_OFFSET = 8 * 4
_X86_CS_OFFSET = 10 * 4
_X86_BOOT_STEPS = 20


class Direction(enum.IntEnum):
    """Which side of a copy receives the data."""

    TO_DUT = 0
    TO_REF = 1


class Isa(enum.Enum):
    """Guest architectures that a QEMU reference can follow."""

    MIPS32 = "mips32"
    RISCV32 = "riscv32"
    RISCV64 = "riscv64"
    X86 = "x86"

    @property
    def qemu_binary(self) -> str:
        return {
            Isa.MIPS32: "qemu-system-mipsel",
            Isa.RISCV32: "qemu-system-riscv32",
            Isa.RISCV64: "qemu-system-riscv64",
            Isa.X86: "qemu-system-i386",
        }[self]

    def qemu_args(self, nemu_home: str) -> list[str]:
        """Architecture-specific QEMU arguments."""
        if self is Isa.MIPS32:
            return ["-machine", "mipssim", "-kernel",
                    f"{nemu_home}/resource/mips-elf/mips.dummy"]
        if self is Isa.RISCV32:
            return ["-bios", "none"]
        return []

    @property
    def is64(self) -> bool:
        return self is Isa.RISCV64

    @property
    def reg_size(self) -> int:
        """Bytes of register state exchanged with the device under test."""
        return {
            Isa.X86: 4 * 9,
            Isa.MIPS32: 4 * 38,
            Isa.RISCV32: 4 * 33,
            Isa.RISCV64: 8 * 33,
        }[self]

    @property
    def gdb_regs_size(self) -> int:
        """Bytes of the full register block that the GDB stub transfers."""
        layout = {
            Isa.X86: 4 * 16,
            Isa.MIPS32: 4 * 38,
            Isa.RISCV32: 4 * 33,
            Isa.RISCV64: 8 * 65,
        }[self]
        return max(layout, 4 * _GDB_ARRAY_WORDS)


class DifftestError(RuntimeError):
    """Raised when the reference refuses an operation or cannot be reached."""


def qemu_command(isa: Isa, port: int, nemu_home: str = "") -> list[str]:
    """Build the command line that starts a halted QEMU waiting for GDB on ``port``."""
    return [
        isa.qemu_binary,
        *isa.qemu_args(nemu_home),
        "-S", "-gdb", f"tcp::{port}", "-nographic",
        "-serial", "none", "-monitor", "none",
    ]


def _hex(data: bytes) -> bytes:
    return "".join(hex_encode(b >> 4) + hex_encode(b & 0xF) for b in data).encode("ascii")


def encode_mem_write(dest: int, data: bytes) -> bytes:
    """Build an ``M`` packet payload writing ``data`` at ``dest``."""
    return b"M0x%x,%x:" % (dest, len(data)) + _hex(data)


def encode_set_regs(regs: bytes) -> bytes:
    """Build a ``G`` packet payload setting the raw register block."""
    return b"G" + _hex(regs)


def decode_regs(reply: bytes) -> bytes:
    """Turn a ``g`` reply into the raw register block, one 32-bit word per 8 hex chars."""
    words = (
        reply[pos:pos + _WORD_HEX_CHARS]
        for pos in range(0, len(reply) - _WORD_HEX_CHARS + 1, _WORD_HEX_CHARS)
    )
    return b"".join((gdb_decode_hex_str(w) & 0xFFFFFFFF).to_bytes(4, "little") for w in words)


def check_reg(name: str, pc: int, ref: int, dut: int, isa64: bool = False) -> bool:
    """Compare one register of the reference and the device; log and return False on mismatch."""
    if ref == dut:
        return True
    fmt = "0x%016x" if isa64 else "0x%08x"
    log.info(
        "%s is different after executing instruction at pc = " + fmt
        + ", right = " + fmt + ", wrong = " + fmt + ", diff = " + fmt,
        name, pc, ref, dut, ref ^ dut,
    )
    return False


class QemuRef:
    """A QEMU instance used as the reference model in differential testing."""

    def __init__(self, conn, isa: Isa) -> None:
        self.conn = conn
        self.isa = isa
        self._process: Optional[subprocess.Popen] = None
        self._closed = False

    @classmethod
    def launch(cls, isa: Isa, port: int, nemu_home: str = "") -> "QemuRef":
        """Start QEMU, connect to its GDB stub and prepare the guest."""
        process = subprocess.Popen(qemu_command(isa, port, nemu_home), stdin=subprocess.DEVNULL)
        while True:
            try:
                conn = GdbConnection.connect("127.0.0.1", port)
                break
            except OSError:
                if process.poll() is not None:
                    raise DifftestError(
                        f"QEMU exited with status {process.returncode} before accepting GDB"
                    ) from None
                time.sleep(0.001)
        print(f"Connect to QEMU with tcp::{port} successfully")
        ref = cls(conn, isa)
        ref._process = process
        atexit.register(ref.close)
        ref.init_isa()
        return ref

    def _command(self, payload: bytes) -> bytes:
        self.conn.send(payload)
        return self.conn.recv()

    def memcpy(self, addr: int, data: bytes) -> None:
        """Copy ``data`` into the reference's memory at ``addr``, in MTU-sized packets."""
        data = bytes(data)
        chunks = [data[i:i + MTU] for i in range(0, len(data), MTU)] or [b""]
        ok = True
        for index, chunk in enumerate(chunks):
            ok &= self._command(encode_mem_write(addr + index * MTU, chunk)) == b"OK"
        if not ok:
            raise DifftestError(f"failed to copy {len(data)} bytes to 0x{addr:x}")

    def get_regs(self) -> bytes:
        """Read the full raw register block."""
        regs = decode_regs(self._command(b"g"))
        size = self.isa.gdb_regs_size
        return regs[:size].ljust(size, b"\0")

    def set_regs(self, regs: bytes) -> bool:
        """Write the full raw register block; return whether the stub accepted it."""
        return self._command(encode_set_regs(bytes(regs))) == b"OK"

    def regcpy(self, dut: bytearray, direction: Direction) -> None:
        """Copy register state between the device buffer ``dut`` and the reference."""
        size = self.isa.reg_size
        if len(dut) < size:
            raise ValueError(f"register buffer needs {size} bytes, got {len(dut)}")
        regs = self.get_regs()
        if Direction(direction) is Direction.TO_REF:
            self.set_regs(bytes(dut[:size]) + regs[size:])
        else:
            dut[:size] = regs[:size]

    def step(self) -> None:
        """Execute one instruction."""
        self._command(b"vCont;s:1")

    def exec(self, n: int) -> None:
        """Execute ``n`` instructions."""
        for _ in range(n):
            self.step()

    def init_isa(self) -> None:
        """Bring the guest into the state the device under test starts from."""
        if self.isa is not Isa.X86:
            return
        self.memcpy(_X86_MBR_ADDR, _X86_MBR)
        regs = bytearray(self.get_regs())
        regs[_X86_EIP_OFFSET:_X86_EIP_OFFSET + 4] = _X86_MBR_ADDR.to_bytes(4, "little")
        regs[_X86_CS_OFFSET:_X86_CS_OFFSET + 4] = bytes(4)
        if not self.set_regs(bytes(regs)):
            raise DifftestError("failed to set the boot registers")
        self.exec(_X86_BOOT_STEPS)

    def raise_intr(self, no: int) -> None:
        """Interrupt injection is not available through the GDB stub."""
        raise DifftestError("raise_intr is not supported")

    def close(self) -> None:
        """Close the connection and stop QEMU if this object started it."""
        if self._closed:
            return
        self._closed = True
        try:
            self.conn.close()
        finally:
            if self._process is not None and self._process.poll() is None:
                self._process.terminate()
                self._process.wait()