"""
Test Suite
==========

Test suite matching the adrender/ package structure.

Test Categories:
- unit: Unit tests for individual components
- integration: API contract tests through the FastAPI test client
"""
