import os
from pathlib import Path

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./db/database.sqlite")

Base = declarative_base()


def make_engine(database_url: str = DATABASE_URL) -> Engine:
    """
    Создаёт движок SQLAlchemy.
    Для SQLite отключаем проверку потока (FastAPI гоняет sync-хэндлеры в пуле),
    для in-memory базы держим одно соединение на весь процесс.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url)

    connect_args = {"check_same_thread": False}
    path = database_url.split(":///", 1)[-1] if ":///" in database_url else ""

    if not path or path == ":memory:":
        return create_engine(
            database_url,
            connect_args=connect_args,
            poolclass=StaticPool,
        )

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args)
