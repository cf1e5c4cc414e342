"""Observation bus for service events: logging, tracing, metrics and reactions."""

__version__ = "0.1.0"