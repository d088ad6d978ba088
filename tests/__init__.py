"""Test suite for cellseg-spatial.

Test organization:
- fixtures/: Cell table generators and inForm-style file writers
- unit/: Unit tests for selection, spatial queries, batch, config, I/O and CLI

Run tests with:
    pytest tests/
    pytest tests/unit/ -v --tb=short
"""
