"""Persistence layer: SQLAlchemy models, session lifecycle and repositories."""
