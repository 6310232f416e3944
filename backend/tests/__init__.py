"""
Test Suite

This module contains all tests for the docflow backend.

Structure:
    tests/
    ├── __init__.py         # This file
    ├── conftest.py         # Pytest fixtures
    ├── unit/               # Unit tests
    │   ├── __init__.py
    │   ├── test_services/  # Service layer tests
    │   ├── test_engine/    # Engine tests
    │   └── test_utils/     # Utility tests
    └── integration/        # Integration tests
        ├── __init__.py
        └── test_api/       # API endpoint tests

To run tests:
    pytest backend/tests/
    pytest backend/tests/unit/
    pytest backend/tests/integration/
"""

