"""Schedules token creation jobs across a pool of executor wallets."""

__version__ = "0.1.0"
