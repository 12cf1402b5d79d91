"""Invoicing on top of a board/card project-management API."""

__version__ = "0.1.0"
