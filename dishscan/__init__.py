"""Dish and menu photo scanning backend."""

__version__ = "1.0.0"
