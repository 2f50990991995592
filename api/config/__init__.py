"""Configuration module for the Leadership Assessment API."""

from .settings import settings
from .database import get_db, engine, SessionLocal

__all__ = ["settings", "get_db", "engine", "SessionLocal"]
