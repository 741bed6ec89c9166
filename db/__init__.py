"""Database package for the lead CRM."""
from db.connection import build_engine, dispose_engine, get_db, get_engine, get_sessionmaker

__all__ = ["build_engine", "get_engine", "get_sessionmaker", "get_db", "dispose_engine"]
