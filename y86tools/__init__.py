"""Y86-64 assembler, instruction-set simulator and HCL code generator."""

__version__ = "0.1.0"