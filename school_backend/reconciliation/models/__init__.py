# reconciliation/models/__init__.py

from .daily_close import DailyClose

__all__ = ["DailyClose"]
