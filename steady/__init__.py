"""Steady: event planning for nonprofit teams."""

__version__ = "0.1.0"
