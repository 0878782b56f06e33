"""A small client for the GDB remote serial protocol."""

from __future__ import annotations

import socket
from typing import BinaryIO, Optional, Union

UINT16_MAX = 0xFFFF
_HEX = b"0123456789abcdefABCDEF"
_RLE_BASE = 29
_RLE_MAX = 126

Nibble = Union[int, str, bytes]


class ConnectionClosed(ConnectionError):
    """Raised when the remote end closes the connection."""


def _byte(value: Nibble) -> int:
    if isinstance(value, (str, bytes)):
        if len(value) != 1:
            raise ValueError(f"expected a single character, got {value!r}")
        return ord(value)
    return value


def _is_xdigit(c: int) -> bool:
    return 0 <= c < 256 and c in _HEX


def _nibble(c: int) -> int:
    return int(chr(c), 16)


def hex_encode(digit: int) -> str:
    """Return the lower-case hex character for a value in ``0..15``."""
    if not 0 <= digit <= 15:
        raise ValueError(f"not a hex digit value: {digit}")
    return chr(ord("a") + digit - 10) if digit > 9 else chr(ord("0") + digit)


def gdb_decode_hex(msb: Nibble, lsb: Nibble) -> int:
    """Decode two hex characters into a byte; return 0xFFFF if either is not hex."""
    hi, lo = _byte(msb), _byte(lsb)
    if not _is_xdigit(hi) or not _is_xdigit(lo):
        return UINT16_MAX
    return 16 * _nibble(hi) + _nibble(lo)


def gdb_decode_hex_str(data: Union[bytes, str]) -> int:
    """Decode leading hex byte pairs as a little-endian integer."""
    if isinstance(data, str):
        data = data.encode("ascii")
    value = 0
    weight = 1
    for pos in range(0, len(data) - 1, 2):
        hi, lo = data[pos], data[pos + 1]
        if not _is_xdigit(hi) or not _is_xdigit(lo):
            break
        value += weight * gdb_decode_hex(hi, lo)
        weight *= 256
    return value


def encode_packet(command: bytes) -> bytes:
    """Frame ``command`` as ``$payload#XX`` with its modulo-256 checksum."""
    checksum = sum(command) & 0xFF
    return b"$" + bytes(command) + b"#%02X" % checksum


class GdbConnection:
    """A remote-protocol session over a pair of binary streams."""

    def __init__(self, rfile: BinaryIO, wfile: BinaryIO) -> None:
        self._rfile = rfile
        self._wfile = wfile
        self._pushback: Optional[int] = None
        self.ack = True
        # reset line state by acknowledging any earlier input
        self._write(b"+")

    @classmethod
    def connect(cls, addr: str, port: int) -> "GdbConnection":
        """Open a TCP connection to a gdbserver; raises OSError if it is refused."""
        try:
            socket.inet_aton(addr)
        except OSError:
            raise ValueError(f"Invalid address: {addr}") from None
        sock = socket.create_connection((addr, port))
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            rfile = sock.makefile("rb")
            wfile = sock.makefile("wb")
        finally:
            sock.close()
        return cls(rfile, wfile)

    def _write(self, data: bytes) -> None:
        try:
            self._wfile.write(data)
            self._wfile.flush()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise ConnectionClosed("send: Connection closed") from exc

    def _getc(self) -> int:
        if self._pushback is not None:
            c, self._pushback = self._pushback, None
            return c
        data = self._rfile.read(1)
        return data[0] if data else -1

    def send(self, command: bytes) -> None:
        """Send one packet, resending until the peer acknowledges it."""
        packet = encode_packet(command)
        while True:
            self._write(packet)
            if not self.ack:
                return
            reply = self._getc()
            if reply < 0:
                raise ConnectionClosed("send: Connection closed")
            if reply == ord("+"):
                return

    def _recv_packet(self) -> tuple[bytes, bool]:
        while True:
            c = self._getc()
            if c < 0:
                raise ConnectionClosed("recv: Connection closed")
            if c == ord("$"):
                break

        reply = bytearray()
        checksum = 0
        escape = False
        while True:
            c = self._getc()
            if c < 0:
                raise ConnectionClosed("recv: Connection closed")
            checksum = (checksum + c) & 0xFF
            if c == ord("$"):
                reply.clear()
                checksum = 0
                escape = False
                continue
            if c == ord("#"):
                checksum = (checksum - c) & 0xFF
                msb, lsb = self._getc(), self._getc()
                return bytes(reply), checksum == gdb_decode_hex(msb, lsb)
            if c == ord("}"):
                escape = True
                continue
            if c == ord("*") and reply:
                c2 = self._getc()
                if c2 < _RLE_BASE or c2 > _RLE_MAX or c2 in (ord("$"), ord("#")):
                    if c2 >= 0:
                        self._pushback = c2
                else:
                    reply.extend(reply[-1:] * (c2 - _RLE_BASE))
                    checksum = (checksum + c2) & 0xFF
                    continue
            if escape:
                c ^= 0x20
                escape = False
            reply.append(c)

    def recv(self) -> bytes:
        """Receive one packet payload, requesting retransmission on a bad checksum."""
        while True:
            reply, ok = self._recv_packet()
            if not self.ack:
                return reply
            self._write(b"+" if ok else b"-")
            if ok:
                return reply

    def start_noack(self) -> bool:
        """Ask the peer to stop acknowledging packets; return whether it agreed."""
        self.send(b"QStartNoAckMode")
        reply = self.recv()
        ok = reply == b"OK"
        if ok:
            self.ack = False
        return ok

    def close(self) -> None:
        """Close both streams."""
        try:
            self._rfile.close()
        finally:
            self._wfile.close()

    def __enter__(self) -> "GdbConnection":
        return self

    def __exit__(self, *args) -> None:
        self.close()