"""
Pytest fixtures for the RequestGuard test suite.

Fixtures are organized by subsystem:
- http_mocking: HTTPX MockTransport handlers, response builders, client factory
"""
