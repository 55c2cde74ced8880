"""Masala back-office: order, inventory and batch-allocation service."""

__version__ = "0.3.0"
