"""Vaultkeep test suite."""
