# app/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.utils.settings import DATABASE_URL


def make_engine(url: str = DATABASE_URL) -> Engine:
    #postgres:// -> postgresql://, sqlalchemy nie akceptuje starego schematu
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)

    if url.startswith("sqlite"):
        # wiele watkow, kazdy z wlasna sesja; timeout = czekanie na blokade zapisu
        connect_args = {"check_same_thread": False, "timeout": 30}
    else:
        connect_args = {}

    return create_engine(url, connect_args=connect_args)


engine = make_engine()

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = engine) -> None:
    # import modeli rejestruje tabele w Base.metadata
    import app.data.models  # noqa: F401

    Base.metadata.create_all(bind=bind)
