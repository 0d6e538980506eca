"""Base exception shared by every wxstation error."""

from __future__ import annotations


class WxStationError(Exception):
    """Root of the wxstation exception hierarchy."""
