"""Compliance due-date engine for field-operations facilities."""

__version__ = "1.0.0"
