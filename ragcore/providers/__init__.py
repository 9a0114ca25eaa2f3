"""Concrete adapters for the interfaces in ``ragcore.interfaces``."""
