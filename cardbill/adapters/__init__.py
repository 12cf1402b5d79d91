"""Adapters for external services."""

from cardbill.adapters.board_adapter import BoardAdapter

__all__ = ["BoardAdapter"]
