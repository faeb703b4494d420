"""dashlink: client for the bot dashboard API."""

__version__ = "0.1.0"
