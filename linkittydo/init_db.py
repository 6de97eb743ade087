from sqlmodel import Session, SQLModel, create_engine
from . import crud, models  # noqa: F401  (registers tables)
from .config import settings
from .logging_utils import get_logger
from .supplier import DEFAULT_PHRASES

logger = get_logger("linkittydo.init_db")


def seed_phrases(engine) -> int:
    """Add the default phrases to an empty corpus; returns how many were added."""
    with Session(engine) as session:
        if crud.get_phrase_count(session) > 0:
            return 0
        for text in DEFAULT_PHRASES:
            crud.create_phrase(session, text)
    logger.info("phrases_seeded")
    return len(DEFAULT_PHRASES)


def make_engine(path: str):
    connect_args = {"check_same_thread": False} if path.startswith("sqlite") else {}
    return create_engine(path, echo=False, connect_args=connect_args)


def init_db(path: str = ""):
    engine = make_engine(path or settings.database_url)
    SQLModel.metadata.create_all(engine)
    seed_phrases(engine)
    logger.info("db_initialized")
    return engine


if __name__ == '__main__':
    init_db()
