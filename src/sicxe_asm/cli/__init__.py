"""
SIC/XE Assembler Command-Line Interface
=======================================

- **sicasm**: assemble a source file into an object program, with
  optional symbol and literal table dumps

The tool is a Click application with built-in help.
"""

__all__ = ["sicasm"]
