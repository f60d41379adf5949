"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment so settings never pick up a developer's .env file
or a real Redis instance.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("RATE_LIMIT_STORE", "memory")
os.environ.setdefault("RATE_LIMIT_ALGORITHM", "sliding_window")
os.environ.setdefault("LOG_LEVEL", "WARNING")
