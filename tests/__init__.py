"""
Test suite for the fuel market intelligence core.

Run all tests: pytest
Run with coverage: pytest --cov=. --cov-report=html
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_spread_analysis_service.py -v
"""
