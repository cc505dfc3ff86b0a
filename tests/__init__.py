"""
Test suite for the bakery ordering backend.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_lifecycle_service.py -v
"""
