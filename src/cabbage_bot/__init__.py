"""Cabbage-Bot: a Stack Overflow chat bot."""

__version__ = "0.1.0"
