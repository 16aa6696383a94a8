"""FPGA configuration file parsers, a JTAG TAP driver and a Lattice FPGA programmer."""

__version__ = "0.1.0"