# nemukit

Building blocks for an educational full-system emulator and the tools
around it. The package has no dependencies outside the standard library.

## Modules

- **`nemukit.bits`**: bit-field helpers `bitmask`, `bits` (an inclusive
  `x[hi:lo]` slice), `sext` (sign extension to an unsigned 64-bit value),
  `roundup` and `rounddown` (power-of-two alignment). It also has
  little-endian access to a byte buffer with `host_read` and `host_write`,
  which take widths of 1, 2, 4 or 8 bytes. `in_pmem(addr, mbase, msize)`
  checks whether an address lies in physical memory. The constants
  `PAGE_SHIFT`, `PAGE_SIZE` and `PAGE_MASK` are defined here too.
- **`nemukit.pattern`**: instruction pattern strings become a frozen
  `Pattern` with `key`, `mask` and `shift` fields. `pattern_decode`
  compiles a pattern of `0`, `1` and `?` characters, up to 64 of them.
  `pattern_decode_hex` compiles lower-case hex digits and `?`, up to 16
  of them. Spaces are ignored in both. `Pattern.matches(inst)` tests an
  instruction word against the pattern. A bad character or a pattern that
  is too long raises `PatternError`, a subclass of `ValueError`.
- **`nemukit.gdbproto`**: a client for the GDB remote serial protocol.
  `GdbConnection(rfile, wfile)` works over any pair of binary streams.
  `GdbConnection.connect(addr, port)` opens a TCP connection.
  - `send(command)` resends until it receives `+`.
  - `recv()` handles escapes and run-length encoding, and requests a
    resend when a checksum is bad.
  - `start_noack()` switches to no-ack mode.
  - `close()` closes the connection; the class is also a context manager.

  The helpers are `encode_packet`, `hex_encode`, `gdb_decode_hex` (which
  returns `0xFFFF` for non-hex input) and `gdb_decode_hex_str` (leading
  hex byte pairs, little-endian). When the peer goes away, the client
  raises `ConnectionClosed`.
- **`nemukit.difftest`**: differential testing with QEMU as the reference
  model.
  - `Isa` lists MIPS32, RISCV32, RISCV64 and X86, with the QEMU binary,
    arguments and register-block sizes for each. `Direction` has the
    values `TO_DUT` and `TO_REF`.
  - `qemu_command` builds the QEMU command line.
  - `encode_mem_write`, `encode_set_regs` and `decode_regs` build and read
    the `M`, `G` and `g` packets.
  - `check_reg` compares one register of the reference and the device,
    and logs the difference on the `nemukit.difftest` logger when they
    disagree.
  - `QemuRef.launch(isa, port, nemu_home)` starts QEMU halted with a GDB
    stub and connects to it. On x86 it also loads a small boot sector that
    puts the guest in protected mode.
  - A `QemuRef` can then `memcpy` (sent in 1500-byte packets),
    `get_regs`, `set_regs`, `regcpy`, `step`, `exec(n)` and `close`.
  - `raise_intr` always raises `DifftestError`, because interrupts cannot
    be injected through the GDB stub.
- **`nemukit.preprocess`**: the Kconfig macro language, in
  `Preprocessor(filename, environ)`.
  - `variable_add` takes a `VariableFlavor`: `SIMPLE`, `RECURSIVE` or
    `APPEND`. `variable_all_del` removes every variable.
  - `expand_string`, `expand_dollar` and `expand_one_token` expand text.
  - References can be user functions with `$(1)`, `$(2)` and so on, or the
    built-ins `error-if`, `filename`, `info`, `lineno`, `shell` and
    `warning-if`. Anything else is looked up in the environment.
  - Every environment variable that was referenced is remembered, and
    `env_write_dep` writes make rules for them.
  - Errors raise `PreprocessError`, prefixed with `filename:lineno`.
- **`nemukit.symtext`**: Kconfig symbol helpers.
  - The enums `SymbolType` and `PropType`, with the name functions
    `sym_type_name` and `prop_get_type_name`.
  - `sym_string_valid` validates a value for a given symbol type.
  - `sym_escape_string_value` quotes a string.
  - `strhash` is the 32-bit FNV hash of a symbol name.
- **`nemukit.symsearch`**: `re_search(names, pattern)` is a
  case-insensitive regex search. Names matched in full come first, and the
  rest follow in byte order. `FileRegistry.lookup(name)` returns one
  `SourceFile` per name.

## Examples

Decode an instruction pattern:

```python
from nemukit.pattern import pattern_decode

addi = pattern_decode("??????? ????? ????? 000 ????? 00100 11")
assert addi.matches(0x00150513)   # addi a0, a0, 1
```

Expand Kconfig macros:

```python
from nemukit.preprocess import Preprocessor, VariableFlavor

pp = Preprocessor("Kconfig", environ={"ARCH": "riscv32"})
pp.variable_add("greeting", "hello $(1)", VariableFlavor.RECURSIVE)
assert pp.expand_string("$(greeting,world) on $(ARCH)") == "hello world on riscv32"
```

Step a reference CPU under QEMU:

```python
from nemukit.difftest import Isa, QemuRef

program = bytes.fromhex("13051500")   # addi a0, a0, 1

ref = QemuRef.launch(Isa.RISCV32, 1234, "/path/to/nemu")
try:
    ref.memcpy(0x80000000, program)
    ref.exec(1)
    regs = ref.get_regs()
finally:
    ref.close()
```

This needs the matching `qemu-system-*` binary on `PATH`.

## What this package does not do

- It is not an emulator. It has no CPU core, no instruction set
  implementation, no devices and no monitor or debugger shell. It provides
  only the helpers listed above.
- It has no command-line program of its own.
- For configuration, it offers the macro preprocessor and the symbol
  helpers only. It does not parse Kconfig files, evaluate symbol
  dependencies, read or write `.config` files, or provide an interactive
  configuration menu.
- QEMU is the only difftest reference that it drives.

## Running the tests

```
pip install -e .[test]
pytest
```