"""Encoders for delivered samples and metrics."""
