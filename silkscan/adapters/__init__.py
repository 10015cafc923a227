"""Adapters used by tests and examples."""
