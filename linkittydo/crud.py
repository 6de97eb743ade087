from sqlmodel import Session, select
from sqlalchemy import func
from . import models
from .game import GameRecord, GameResult
from datetime import datetime, timezone
from typing import Optional
import json
import time
import uuid

engine = None


def _unique_id(prefix: str) -> str:
    millis = int(time.time() * 1000)
    return f"{prefix}-{millis}-{uuid.uuid4().hex[:6].upper()}"


def normalize_text(text: str) -> str:
    return (text or "").strip().lower().replace("  ", " ")


# users

def create_user(session: Session, name: str, email: str) -> models.User:
    """Create a user. Raises ValueError("NAME_TAKEN" / "EMAIL_TAKEN") on conflicts."""
    if not is_name_available(session, name):
        raise ValueError("NAME_TAKEN")
    if not is_email_available(session, email):
        raise ValueError("EMAIL_TAKEN")
    u = models.User(
        unique_id=_unique_id("USR"),
        name=name.strip(),
        email=email.strip().lower(),
        created_at=datetime.now(timezone.utc),
    )
    session.add(u)
    session.commit()
    session.refresh(u)
    return u


def get_user(session: Session, unique_id: str) -> Optional[models.User]:
    if not unique_id:
        return None
    return session.exec(select(models.User).where(models.User.unique_id == unique_id)).first()


def is_name_available(session: Session, name: str) -> bool:
    q = select(models.User).where(func.lower(models.User.name) == name.strip().lower())
    return session.exec(q).first() is None


def is_email_available(session: Session, email: str) -> bool:
    q = select(models.User).where(models.User.email == email.strip().lower())
    return session.exec(q).first() is None


def update_difficulty(session: Session, unique_id: str, difficulty: int) -> Optional[models.User]:
    if difficulty < 0 or difficulty > 100:
        raise ValueError("Difficulty must be between 0 and 100")
    u = get_user(session, unique_id)
    if not u:
        return None
    u.preferred_difficulty = difficulty
    u.updated_at = datetime.now(timezone.utc)
    session.add(u)
    session.commit()
    session.refresh(u)
    return u


def add_points(session: Session, unique_id: str, points: int) -> Optional[models.User]:
    u = get_user(session, unique_id)
    if not u:
        return None
    u.lifetime_points += points
    u.updated_at = datetime.now(timezone.utc)
    session.add(u)
    session.commit()
    session.refresh(u)
    return u


# phrase corpus

def create_phrase(session: Session, text: str, generated_by_llm: bool = False) -> models.GamePhrase:
    p = models.GamePhrase(
        unique_id=_unique_id("PHR"),
        text=text,
        word_count=len(text.split()),
        generated_by_llm=generated_by_llm,
        created_at=datetime.now(timezone.utc),
    )
    session.add(p)
    session.commit()
    session.refresh(p)
    return p


def get_all_phrases(session: Session) -> list[models.GamePhrase]:
    return list(session.exec(select(models.GamePhrase).order_by(models.GamePhrase.id)).all())


def get_phrase_count(session: Session) -> int:
    return session.exec(select(func.count(models.GamePhrase.id))).one()


# game records

def save_game_record(session: Session, user_id: str, record: GameRecord) -> models.StoredGame:
    """Insert the record, or replace the stored copy with the same game id."""
    row = session.exec(select(models.StoredGame).where(models.StoredGame.game_id == record.game_id)).first()
    if row is None:
        row = models.StoredGame(game_id=record.game_id, user_id=user_id)
    row.phrase_text = record.phrase_text
    row.result = record.result.value
    row.score = record.score
    row.played_at = record.played_at
    row.completed_at = record.completed_at
    row.record_json = json.dumps(record.to_dict())
    session.add(row)
    session.commit()
    session.refresh(row)
    return row


def get_user_games(session: Session, user_id: str) -> list[dict]:
    rows = session.exec(
        select(models.StoredGame)
        .where(models.StoredGame.user_id == user_id)
        .order_by(models.StoredGame.id)
    ).all()
    games = []
    for row in rows:
        try:
            games.append(json.loads(row.record_json))
        except ValueError:
            continue
    return games


def get_played_phrase_texts(session: Session, user_id: Optional[str]) -> set[str]:
    if not user_id:
        return set()
    rows = session.exec(select(models.StoredGame.phrase_text).where(models.StoredGame.user_id == user_id)).all()
    return {normalize_text(t) for t in rows}


def finish_game(session: Session, user_id: str, record: GameRecord) -> None:
    """Persist a finished game and credit a solved game's score to the user."""
    save_game_record(session, user_id, record)
    if record.result is GameResult.SOLVED and record.score > 0:
        add_points(session, user_id, record.score)
