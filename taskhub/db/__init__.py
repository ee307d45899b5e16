from taskhub.db.base import Base
from taskhub.db.session import SessionLocal, engine, init_db, make_engine

__all__ = ["Base", "SessionLocal", "engine", "init_db", "make_engine"]
