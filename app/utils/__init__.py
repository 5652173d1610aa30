"""Utility functions."""

from app.utils.time import now_ms, to_epoch_ms, utc_now

__all__ = ["utc_now", "now_ms", "to_epoch_ms"]
