"""Database package exposing declarative base and ORM models."""

from .base import Base, TimestampMixin, as_utc, utcnow
from . import models

__all__ = ["Base", "TimestampMixin", "as_utc", "utcnow", "models"]
