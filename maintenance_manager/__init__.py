"""Maintenance orchestration for hyperconverged virtualization clusters."""

__version__ = "0.1.0"
