import json
from datetime import datetime, timezone

import pytest
from sqlmodel import SQLModel, create_engine, Session

from linkittydo import crud, models  # noqa: F401
from linkittydo.game import GameEndEvent, GameRecord, GameResult, GuessEvent


def setup_db(tmp_path):
    db = tmp_path / 'crud.db'
    engine = create_engine(f'sqlite:///{db}', connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    crud.engine = engine
    return engine


def test_create_user_and_conflicts(tmp_path):
    engine = setup_db(tmp_path)
    with Session(engine) as s:
        u = crud.create_user(s, " Alice ", "Alice@Example.com ")
        assert u.unique_id.startswith("USR-")
        assert u.name == "Alice"
        assert u.email == "alice@example.com"
        assert u.preferred_difficulty == 10 and u.lifetime_points == 0
        assert crud.get_user(s, u.unique_id).id == u.id
        assert crud.get_user(s, "") is None

        with pytest.raises(ValueError, match="NAME_TAKEN"):
            crud.create_user(s, "alice", "other@example.com")
        with pytest.raises(ValueError, match="EMAIL_TAKEN"):
            crud.create_user(s, "Bob", "ALICE@example.com")
        assert not crud.is_name_available(s, "ALICE")
        assert crud.is_email_available(s, "bob@example.com")


def test_difficulty_and_points(tmp_path):
    engine = setup_db(tmp_path)
    with Session(engine) as s:
        u = crud.create_user(s, "Carol", "carol@example.com")
        assert crud.update_difficulty(s, u.unique_id, 55).preferred_difficulty == 55
        with pytest.raises(ValueError):
            crud.update_difficulty(s, u.unique_id, 101)
        assert crud.update_difficulty(s, "USR-missing", 5) is None
        assert crud.add_points(s, u.unique_id, 200).lifetime_points == 200
        assert crud.add_points(s, "USR-missing", 5) is None


def test_save_game_record_replaces_by_game_id(tmp_path):
    engine = setup_db(tmp_path)
    rec = GameRecord(
        game_id="GAME-1-ABCDEF",
        played_at=datetime.now(timezone.utc),
        phrase_id=9,
        phrase_text="Practice makes perfect",
        difficulty=20,
    )
    with Session(engine) as s:
        crud.save_game_record(s, "USR-1", rec)
        rec.append(GuessEvent(0, "practice", True, 100))
        rec.append(GameEndEvent("gaveup"))
        rec.result = GameResult.GAVE_UP
        rec.completed_at = datetime.now(timezone.utc)
        crud.save_game_record(s, "USR-1", rec)

        games = crud.get_user_games(s, "USR-1")
        assert len(games) == 1
        g = games[0]
        assert g["gameId"] == "GAME-1-ABCDEF"
        assert g["result"] == "GaveUp"
        assert [e["eventType"] for e in g["events"]] == ["guess", "gameend"]
        assert crud.get_user_games(s, "USR-2") == []
        assert crud.get_played_phrase_texts(s, "USR-1") == {"practice makes perfect"}
        assert crud.get_played_phrase_texts(s, None) == set()


def test_finish_game_credits_solved_score(tmp_path):
    engine = setup_db(tmp_path)
    with Session(engine) as s:
        u = crud.create_user(s, "Dave", "dave@example.com")
        rec = GameRecord("GAME-2-ABCDEF", datetime.now(timezone.utc), 1, "Knowledge is power",
                         score=200, result=GameResult.SOLVED)
        crud.finish_game(s, u.unique_id, rec)
        s.refresh(u)
        assert u.lifetime_points == 200

        lost = GameRecord("GAME-3-ABCDEF", datetime.now(timezone.utc), 1, "Knowledge is power",
                          score=0, result=GameResult.GAVE_UP)
        crud.finish_game(s, u.unique_id, lost)
        s.refresh(u)
        assert u.lifetime_points == 200
        row = json.loads(s.get(models.StoredGame, 2).record_json)
        assert row["result"] == "GaveUp"


def test_phrase_corpus(tmp_path):
    engine = setup_db(tmp_path)
    with Session(engine) as s:
        assert crud.get_phrase_count(s) == 0
        p = crud.create_phrase(s, "Fortune favors the bold")
        assert p.unique_id.startswith("PHR-") and p.word_count == 4 and not p.generated_by_llm
        assert crud.get_phrase_count(s) == 1
    assert crud.normalize_text("  Fortune  Favors ") == "fortune favors"
