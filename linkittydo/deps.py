from sqlmodel import Session
from . import crud
from .clues import ClueSelector
from .game import GameRecord, GameService
from .supplier import PhraseSupplier


def get_session():
    # simple dependency that yields a session
    with Session(crud.engine) as session:
        yield session


def persist_finished_game(user_id: str, record: GameRecord) -> None:
    with Session(crud.engine) as session:
        crud.finish_game(session, user_id, record)


_game_service = GameService(PhraseSupplier(), record_sink=persist_finished_game)
_clue_selector = ClueSelector()


def get_game_service() -> GameService:
    return _game_service


def get_clue_selector() -> ClueSelector:
    return _clue_selector
