from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    unique_id: str = Field(index=True, unique=True)  # USR-{ms}-{random}
    name: str = Field(index=True)
    email: str = Field(index=True)
    lifetime_points: int = 0
    preferred_difficulty: int = 10
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class GamePhrase(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    unique_id: str = Field(index=True, unique=True)  # PHR-{ms}-{random}
    text: str
    word_count: int = 0
    generated_by_llm: bool = False
    created_at: Optional[datetime] = None


class StoredGame(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    game_id: str = Field(index=True, unique=True)
    user_id: str = Field(index=True)  # User.unique_id
    phrase_text: str = ""
    result: str = "InProgress"
    score: int = 0
    played_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    record_json: str = ""
