"""Bundled rule packs."""
