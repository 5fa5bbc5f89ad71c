"""
Test suite for the event-API load-test package.

This package contains:
- conftest.py: fakes for Locust responses, clients and statistics
- unit/: pytest unit tests for every module under ``loadtest``
"""
