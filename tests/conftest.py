"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment so settings are built the same way on every
machine, regardless of local .env files or exported quota keys.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

# Quota keys from the developer's shell would change every admission decision
for _key in list(os.environ):
    if _key.startswith("QUERY_LIMIT"):
        del os.environ[_key]

# Set default env vars that all tests might need
os.environ.setdefault("KAGI_API_KEY", "test-kagi-key-123")
os.environ.setdefault("LOG_LEVEL", "WARNING")
