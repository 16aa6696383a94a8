# fpgaprog

A library for reading FPGA configuration files and loading them into
Lattice FPGAs over JTAG (MachXO2, MachXO3LF, MachXO3D, ECP5 and the Nexus
families CrosslinkNX and CertusNX). It has no third-party runtime
dependencies.

## Modules

- `fpgaprog.bitstream`: the parser base `BitstreamParser` (after `parse()`,
  `data` holds the bytes, `bit_length` the size in bits, `header` any
  key/value information, read with `get_header_value`), `RawParser` for
  plain binary images with optional per-byte bit reversal, `reverse_byte`
  and `ParseError`.
- `fpgaprog.ihex`: `IhexParser` and `McsParser` for Intel HEX style
  records. `IhexParser` skips `#` comment lines, understands data and
  end-of-file records and groups the data into contiguous `DataSection`
  blocks in `sections`. `McsParser` also understands extended linear
  address records. Both check every record checksum.
- `fpgaprog.latticebit`: `LatticeBitParser` for Lattice `.bit` files, with
  or without the leading `LSCC` tag. It reads the comment header, checks the
  preamble and stores the IDCODE found in the configuration data as the
  `idcode` header value.
- `fpgaprog.jed`: `JedParser` for JEDEC fuse files. It collects fuse
  sections (`JedSection`, each with the preceding note), the fuse and pin
  counts, the feature row and feabits and the user code, checks the fuse
  checksum and that all fuses are present. `header_text()` returns a
  readable summary.
- `fpgaprog.parts`: the tables `FPGA_LIST` (`FpgaModel`), `MISC_DEV_LIST`
  (`MiscDevice`) and `MANUFACTURERS`, and the IDCODE helpers
  `idcode_manufacturer_id`, `idcode_part`, `idcode_version` and
  `irlength_for`.
- `fpgaprog.progress`: `ProgressBar`, redrawn at most once a second unless
  forced; in quiet mode it prints only the message and the outcome.
- `fpgaprog.jtag`: the TAP states (`TapState`), the abstract cable
  interface `JtagInterface` and `Jtag`, which scans the chain when created,
  selects a device and shifts IR/DR with bypass bits for the other devices.
- `fpgaprog.lattice_regs`: Lattice command and register constants,
  `LatticeFamily`, `FlashSector`, `parse_flash_sector`, and
  `describe_status` / `describe_feabits`, which turn register values into
  readable text.
- `fpgaprog.lattice`: `Lattice`, which loads a `.bit` file into SRAM,
  writes a `.jed` file to internal flash and offers the register operations
  these flows are built from. Failures raise `LatticeError`.
- `fpgaprog.machxo3d`: MachXO3D steps: sector-aware internal flash writing
  from a JED file, feature row, FEAbits and ECDSA public key programming,
  and `parse_pubkey` for `.pub` file contents.

## Parsing files

Parsers take the file content (bytes or text) and raise `ParseError` when it
is malformed.

```python
from fpgaprog.ihex import IhexParser

with open("design.hex", "rb") as fh:
    parser = IhexParser(fh.read(), reverse_order=False, verbose=False)
parser.parse()
for section in parser.sections:
    print(hex(section.addr), section.length)
```

```python
from fpgaprog.latticebit import LatticeBitParser

with open("design.bit", "rb") as fh:
    bit = LatticeBitParser(fh.read(), verbose=False)
bit.parse()
print(bit.get_header_value("idcode"))
```

```python
from fpgaprog.jed import JedParser

with open("design.jed", "rb") as fh:
    jed = JedParser(fh.read(), verbose=False)
jed.parse()
print(jed.header_text())
```

## Talking to hardware

`Jtag` drives any object implementing `JtagInterface`. Subclass it for your
probe, giving `set_clk_freq`, `write_tms`, `write_tdi`, `toggle_clk`,
`get_buffer_size`, `is_full` and `flush`. Creating a `Jtag` scans the chain;
an IDCODE not in the parts tables raises `UnknownDeviceError`.
`device_select` raises `IndexError` for an index outside the chain.

```python
from fpgaprog.jtag import Jtag
from fpgaprog.lattice import Lattice, ProgramType

jtag = Jtag(my_interface, verbose=0)
fpga = Lattice(jtag, "design.bit", "", ProgramType.WR_SRAM, "", False, 0)
fpga.program()
```

`Lattice` reads the named file from disk. It picks SRAM or flash
programming from the file extension (or `file_type`) and the requested
`ProgramType`; `.bit`/`.bin` go to SRAM unless flash is asked for. On a
MachXO3D a flash sector name (`CFG0`, `CFG1`, `UFM0`-`UFM3`, `FEA`, `PKEY`)
must be given. For flash, `.jed` files go to internal flash and `.pub` files
program the MachXO3D public key.

## What it does not do

- There is no command-line program; the package is used as a library.
- No cable drivers are included: you provide the `JtagInterface`.
- Only Lattice devices are programmed. Other vendors appear in the parts
  tables for chain detection only.
- `Lattice.program_flash` handles `.jed` and `.pub` files only. Feature
  files (`.fea`), `.mcs` files and writing or dumping an external SPI flash
  are not supported; `Lattice` only provides the `spi_put` and `spi_wait`
  primitives for SPI access through the FPGA.
- `ProgramType.RD_FLASH` selects no operation in `Lattice.program`.