"""
VAR Toolbox test suite.

Shared fixtures and simulated VAR processes live in ``tests.conftest``.
"""
