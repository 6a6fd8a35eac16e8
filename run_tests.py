#!/usr/bin/env python3
"""Test runner script for running pytest programmatically."""

import sys

import pytest

# Run pytest with coverage
sys.exit(pytest.main(["tests/", "-v", "--cov=davsync"]))
