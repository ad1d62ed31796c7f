"""Escrow transactions, platform fees and migration checklists for business sales."""

__version__ = "0.1.0"
