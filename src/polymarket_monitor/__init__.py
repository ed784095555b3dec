"""Polymarket Monitor - polling monitors with durable webhook alerting."""

__version__ = "0.1.0"
