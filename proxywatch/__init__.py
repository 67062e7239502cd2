"""Proxy Watch — proxy endpoint reachability and expiry monitor."""

__version__ = "1.0.0"
