"""
Test suite for the photodiary image proxy.

- Unit tests for models, services and ambient modules
- Integration tests for the HTTP API
"""
