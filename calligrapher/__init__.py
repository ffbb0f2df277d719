"""Calligrapher: a terminal runner for Ink interactive fiction."""

__version__ = "1.0.0"
