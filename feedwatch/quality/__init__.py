"""Payload quality validation."""
from .validator import DataQualityValidator

__all__ = ["DataQualityValidator"]
