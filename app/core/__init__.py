from .config import Settings, settings
from .database import engine, init_db

__all__ = ["Settings", "settings", "engine", "init_db"]
