"""Version-control helpers."""

from .history import ChangeHistory, HistoryError

__all__ = ["ChangeHistory", "HistoryError"]
