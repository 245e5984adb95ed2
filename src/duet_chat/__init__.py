"""Duet Chat: one-to-one chat service."""

__version__ = "0.1.0"
