"""
Test support utilities for db-spine tests.

Helpers that don't fit as pytest fixtures but are useful across
multiple test files: in-memory row sources, deterministic clocks and
crawl drivers.
"""
