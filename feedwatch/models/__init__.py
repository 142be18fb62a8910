"""Database models for FeedWatch persistence."""
from .base import Base, get_engine, reset_engine, session_scope

__all__ = ["Base", "get_engine", "reset_engine", "session_scope"]
