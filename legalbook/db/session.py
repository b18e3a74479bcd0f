from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from legalbook.core.config import settings

DATABASE_URI = settings.SQLALCHEMY_DATABASE_URI

if DATABASE_URI.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URI,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        DATABASE_URI,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
