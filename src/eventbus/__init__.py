"""Event bus service: HTTP publish/subscribe with a handler registry."""

__version__ = "0.1.0"
