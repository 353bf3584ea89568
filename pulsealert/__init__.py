"""Vital-sign alerting pipeline.

This package turns blood-pressure and heart-rate readings into classified,
de-duplicated alerts kept in a persisted per-user notification feed.
"""

from pulsealert.observability import configure_logging

__all__ = ["configure_logging"]
