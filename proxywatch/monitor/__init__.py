"""Proxy Watch — Monitor Package.

Components:
  - expiry: valid / expiring soon / expired classification
  - prober: SOCKS5 and remote reachability checkers
  - scheduler: grouped, throttled batch checks with alerts
"""

from proxywatch.monitor.expiry import days_until_expiry, evaluate_expiry
from proxywatch.monitor.prober import (
    ProxyReachabilityChecker,
    RemoteReachabilityChecker,
    SocksReachabilityChecker,
    create_checker,
)
from proxywatch.monitor.scheduler import BatchScheduler

__all__ = [
    "days_until_expiry",
    "evaluate_expiry",
    "ProxyReachabilityChecker",
    "RemoteReachabilityChecker",
    "SocksReachabilityChecker",
    "create_checker",
    "BatchScheduler",
]
