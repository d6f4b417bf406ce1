"""Compliance evaluation service: gates deployments on security scan results."""

__version__ = "0.1.0"
