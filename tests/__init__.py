"""
sbprofile test suite.

Tests are organized by layer:
    tests/unit/         Unit tests (no I/O, fast)
    tests/policy/       Content library and parameter files
    tests/integration/  CLI end-to-end via click's CliRunner
    tests/safety/       Guards on the safe defaults

Run all tests:
    pytest

Run unit tests only:
    pytest tests/unit/
"""
