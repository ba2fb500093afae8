"""Scorewatch: fundamental score monitoring and change notifications."""

__version__ = "0.1.0"
