"""Utilities package initialization."""
