# src/parallelai_backend/app/db/__init__.py
# Engine, session dependency and declarative base. ORM classes live in
# .models, which imports Base from here.
from .session import Base, SessionLocal, check_connection, engine, get_db

__all__ = ["Base", "SessionLocal", "check_connection", "engine", "get_db"]
