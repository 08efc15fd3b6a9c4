"""Deterministic analysis engines over time entries."""
