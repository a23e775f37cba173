from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
import os

# DATABASE_URI first, then DATABASE_URL. Default is a local sqlite file for development.
SQLALCHEMY_DATABASE_URL = (
	os.getenv("DATABASE_URI")
	or os.getenv("DATABASE_URL")
	or "sqlite+pysqlite:///./loyalty.db"
)

_connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=_connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class Base(DeclarativeBase):
	pass
