"""Shared kernel: logging, metrics and API middleware."""
