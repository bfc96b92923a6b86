# payouts/models/__init__.py

from .payout_rule import PayoutRule

__all__ = ["PayoutRule"]
