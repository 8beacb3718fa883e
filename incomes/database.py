from sqlmodel import SQLModel, create_engine

from .config import DATA_DIR, get_settings

DATA_DIR.mkdir(parents=True, exist_ok=True)

DATABASE_URL = get_settings().database_url

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    echo=False,
    connect_args=connect_args,
)


def init_db() -> None:
    """Create database tables if they do not exist."""
    SQLModel.metadata.create_all(engine)
