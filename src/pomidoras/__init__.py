"""Pomidoras - countdown timer daemon with a local control client."""

__version__ = "0.1.0"
