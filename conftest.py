"""Global pytest configuration."""

import os

# Set EMBEDDING_DATABASE_URL for tests before any imports
os.environ.setdefault("EMBEDDING_DATABASE_URL", "sqlite://")
