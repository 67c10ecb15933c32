"""Core infrastructure: configuration, logging, lifecycle, process context."""
