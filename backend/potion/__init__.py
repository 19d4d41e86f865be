"""Potion access core - unified multi-role authentication and access control."""

__version__ = "0.1.0"
