"""Folio: a block-based note editor core."""

__version__ = "0.1.0"
