"""Instrumentation core: interception, sampling and metric aggregation."""
