"""
feedharvest Test Suite

This package contains all automated tests for feedharvest.

Structure:
- unit/: Fast, isolated unit tests (no browser, no network)
"""
