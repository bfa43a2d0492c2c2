"""Purse404 contract interaction CLI with a CSV transaction ledger."""

__version__ = "0.1.0"
