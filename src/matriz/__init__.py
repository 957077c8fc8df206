"""Matriz - franchise back-office webhook dispatcher and notification gateway."""

__version__ = "0.1.0"
