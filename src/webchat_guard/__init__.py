"""Inbound-message abuse control for public chat channels."""

__version__ = "0.1.0"
