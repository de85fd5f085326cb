"""Core app configuration and database."""

from vulnradar.core.config import get_settings, settings
from vulnradar.core.database import get_db

__all__ = ["get_settings", "settings", "get_db"]
