"""Shared infrastructure: database sessions and domain errors."""
