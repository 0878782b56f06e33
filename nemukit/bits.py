"""Bit-field helpers, alignment arithmetic and little-endian guest memory access."""

from __future__ import annotations

PAGE_SHIFT = 12
PAGE_SIZE = 1 << PAGE_SHIFT
PAGE_MASK = PAGE_SIZE - 1

_U64 = (1 << 64) - 1
_ACCESS_WIDTHS = (1, 2, 4, 8)


def bitmask(bits: int) -> int:
    """Return a mask with the low ``bits`` bits set."""
    if bits < 0:
        raise ValueError(f"negative bit count: {bits}")
    return (1 << bits) - 1


def bits(x: int, hi: int, lo: int) -> int:
    """Extract ``x[hi:lo]`` (inclusive on both ends), like a Verilog slice."""
    if hi < lo:
        raise ValueError(f"invalid bit range [{hi}:{lo}]")
    return (x >> lo) & bitmask(hi - lo + 1)


def sext(x: int, length: int) -> int:
    """Sign-extend the low ``length`` bits of ``x`` to an unsigned 64-bit value."""
    if not 1 <= length <= 64:
        raise ValueError(f"sign-extension length out of range: {length}")
    value = x & bitmask(length)
    if value >> (length - 1) & 1:
        value -= 1 << length
    return value & _U64


def _check_alignment(sz: int) -> None:
    if sz <= 0 or sz & (sz - 1):
        raise ValueError(f"alignment must be a positive power of two: {sz}")


def roundup(a: int, sz: int) -> int:
    """Round ``a`` up to a multiple of the power of two ``sz``."""
    _check_alignment(sz)
    return (a + sz - 1) & ~(sz - 1)


def rounddown(a: int, sz: int) -> int:
    """Round ``a`` down to a multiple of the power of two ``sz``."""
    _check_alignment(sz)
    return a & ~(sz - 1)


def _check_access(buf, offset: int, length: int) -> None:
    if length not in _ACCESS_WIDTHS:
        raise ValueError(f"unsupported access width: {length}")
    if offset < 0 or offset + length > len(buf):
        raise IndexError(
            f"access of {length} bytes at offset {offset} outside buffer of {len(buf)} bytes"
        )


def host_read(buf, offset: int, length: int) -> int:
    """Read a little-endian unsigned value of ``length`` bytes from ``buf``."""
    _check_access(buf, offset, length)
    return int.from_bytes(bytes(buf[offset:offset + length]), "little")


def host_write(buf, offset: int, length: int, data: int) -> None:
    """Store the low ``length`` bytes of ``data`` into ``buf`` in little-endian order."""
    _check_access(buf, offset, length)
    buf[offset:offset + length] = (data & bitmask(length * 8)).to_bytes(length, "little")


def in_pmem(addr: int, mbase: int, msize: int) -> bool:
    """Tell whether ``addr`` lies inside physical memory ``[mbase, mbase + msize)``."""
    return mbase <= addr < mbase + msize