"""Logging and Prometheus metrics for BoxWatch."""
