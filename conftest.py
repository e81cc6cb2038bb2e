"""
Pytest configuration. Settings are read at import time, so the environment
must be in place before any ``src.campus`` module is imported.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENV_FILE", "/nonexistent/.env")
