"""Shared infrastructure: structured logging and Grafana metrics."""
