"""
CLI tools for DocDB administration.

This module provides command-line tools for:
- descriptor: Check schema descriptor files before clients send them

Invariants:
    - Tools work offline (no running server required)
"""

from .descriptor_cli import DescriptorCLI

__all__ = ["DescriptorCLI"]
