"""Emulator support toolkit: bit helpers, instruction patterns, a GDB remote client, QEMU difftest and Kconfig macro and symbol helpers."""

__version__ = "0.1.0"
__all__ = ["bits", "pattern", "gdbproto", "difftest", "preprocess", "symtext", "symsearch"]