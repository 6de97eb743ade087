"""
Game sessions and the guess / give-up state machine.

Sessions live in a process-wide, in-memory SessionStore. Every mutation of a
single session happens under that session's lock; different sessions never
contend with each other.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Optional, Union

from .logging_utils import get_logger
from .phrases import Phrase

logger = get_logger("linkittydo.game")

POINTS_PER_WORD = 100
DEFAULT_DIFFICULTY = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameResult(str, Enum):
    IN_PROGRESS = "InProgress"
    SOLVED = "Solved"
    GAVE_UP = "GaveUp"


@dataclass(frozen=True)
class ClueEvent:
    event_type: ClassVar[str] = "clue"
    word_index: int
    search_term: str
    url: str
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class GuessEvent:
    event_type: ClassVar[str] = "guess"
    word_index: int
    guess_text: str
    is_correct: bool
    points_awarded: int
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class GameEndEvent:
    event_type: ClassVar[str] = "gameend"
    reason: str  # "solved" or "gaveup"
    timestamp: datetime = field(default_factory=utcnow)


GameEvent = Union[ClueEvent, GuessEvent, GameEndEvent]


def event_to_dict(event: GameEvent) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "eventType": event.event_type,
        "timestamp": event.timestamp.isoformat(),
    }
    if isinstance(event, ClueEvent):
        payload.update(wordIndex=event.word_index, searchTerm=event.search_term, url=event.url)
    elif isinstance(event, GuessEvent):
        payload.update(
            wordIndex=event.word_index,
            guessText=event.guess_text,
            isCorrect=event.is_correct,
            pointsAwarded=event.points_awarded,
        )
    elif isinstance(event, GameEndEvent):
        payload["reason"] = event.reason
    else:
        raise TypeError(f"unknown game event: {event!r}")
    return payload


def generate_game_id() -> str:
    """GAME-{unix ms}-{6 uppercase hex}; only meant to avoid collisions."""
    millis = int(time.time() * 1000)
    return f"GAME-{millis}-{uuid.uuid4().hex[:6].upper()}"


@dataclass
class GameRecord:
    game_id: str
    played_at: datetime
    phrase_id: int
    phrase_text: str
    difficulty: int = DEFAULT_DIFFICULTY
    score: int = 0
    completed_at: Optional[datetime] = None
    result: GameResult = GameResult.IN_PROGRESS
    events: List[GameEvent] = field(default_factory=list)

    def append(self, event: GameEvent) -> None:
        self.events.append(event)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gameId": self.game_id,
            "playedAt": self.played_at.isoformat(),
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
            "score": self.score,
            "phraseId": self.phrase_id,
            "phraseText": self.phrase_text,
            "difficulty": self.difficulty,
            "result": self.result.value,
            "events": [event_to_dict(e) for e in self.events],
        }


class CaseInsensitiveSet:
    """Set of strings compared case-insensitively; keeps the first spelling seen."""

    def __init__(self, items=()):
        self._items: Dict[str, str] = {}
        for item in items:
            self.add(item)

    def add(self, item: str) -> None:
        self._items.setdefault(item.lower(), item)

    def __contains__(self, item: object) -> bool:
        return isinstance(item, str) and item.lower() in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items.values())

    def __repr__(self) -> str:
        return f"CaseInsensitiveSet({list(self._items.values())!r})"


@dataclass
class GameSession:
    session_id: uuid.UUID
    phrase: Phrase
    revealed_words: Dict[int, bool]
    started_at: datetime
    user_id: Optional[str] = None
    score: int = 0
    status: GameResult = GameResult.IN_PROGRESS
    used_clue_terms: Dict[int, CaseInsensitiveSet] = field(default_factory=dict)
    used_clue_urls: CaseInsensitiveSet = field(default_factory=CaseInsensitiveSet)
    game_record: Optional[GameRecord] = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def is_guest(self) -> bool:
        return not self.user_id

    @property
    def is_complete(self) -> bool:
        return all(self.revealed_words.values())

    @property
    def is_finished(self) -> bool:
        return self.status is not GameResult.IN_PROGRESS

    def used_terms_for(self, word_index: int) -> CaseInsensitiveSet:
        return self.used_clue_terms.setdefault(word_index, CaseInsensitiveSet())


def _parse_session_id(session_id) -> Optional[uuid.UUID]:
    if isinstance(session_id, uuid.UUID):
        return session_id
    try:
        return uuid.UUID(str(session_id))
    except (TypeError, ValueError):
        return None


class SessionStore:
    """Thread-safe in-memory map of session id -> GameSession."""

    def __init__(self):
        self._sessions: Dict[uuid.UUID, GameSession] = {}
        self._lock = threading.Lock()

    def add(self, session: GameSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get(self, session_id) -> Optional[GameSession]:
        sid = _parse_session_id(session_id)
        if sid is None:
            return None
        with self._lock:
            return self._sessions.get(sid)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


@dataclass
class WordState:
    index: int
    display_text: Optional[str]
    is_hidden: bool
    is_revealed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "displayText": self.display_text,
            "isHidden": self.is_hidden,
            "isRevealed": self.is_revealed,
        }


@dataclass
class GameState:
    session_id: Optional[uuid.UUID] = None
    words: List[WordState] = field(default_factory=list)
    score: int = 0
    is_complete: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": str(self.session_id) if self.session_id else None,
            "words": [w.to_dict() for w in self.words],
            "score": self.score,
            "isComplete": self.is_complete,
        }


@dataclass
class GuessResult:
    is_correct: bool = False
    is_phrase_complete: bool = False
    current_score: int = 0
    revealed_word: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isCorrect": self.is_correct,
            "isPhraseComplete": self.is_phrase_complete,
            "currentScore": self.current_score,
            "revealedWord": self.revealed_word,
        }


# called with (user_id, record) once a tracked game reaches a terminal state
RecordSink = Callable[[str, GameRecord], None]


class GameService:
    def __init__(self, phrase_supplier, store: Optional[SessionStore] = None,
                 record_sink: Optional[RecordSink] = None):
        self.phrase_supplier = phrase_supplier
        self.store = store if store is not None else SessionStore()
        self.record_sink = record_sink

    def start_game(self, user_id: Optional[str] = None, difficulty: int = DEFAULT_DIFFICULTY) -> GameSession:
        """Deal a phrase and open a new session.

        `difficulty` is stored on the game record only; every content word is
        hidden regardless of its value. Raises GenerationExhausted when the
        phrase supplier cannot produce a phrase.
        """
        user_id = user_id or None
        phrase = self.phrase_supplier.get_phrase_for_user(user_id)
        now = utcnow()
        session = GameSession(
            session_id=uuid.uuid4(),
            phrase=phrase,
            revealed_words={w.index: False for w in phrase.hidden_words},
            started_at=now,
            user_id=user_id,
        )
        if not session.is_guest:
            session.game_record = GameRecord(
                game_id=generate_game_id(),
                played_at=now,
                phrase_id=phrase.id,
                phrase_text=phrase.full_text,
                difficulty=difficulty,
            )
        self.store.add(session)
        logger.info("game_started", extra={
            "session_id": str(session.session_id),
            "user_id": user_id,
            "phrase_id": phrase.id,
        })
        return session

    def get_game(self, session_id) -> Optional[GameSession]:
        return self.store.get(session_id)

    def submit_guess(self, session_id, word_index: int, guess: str) -> GuessResult:
        session = self.get_game(session_id)
        if session is None:
            return GuessResult()
        finished_record = None
        with session.lock:
            word = session.phrase.word_at(word_index)
            if word is None or not word.is_hidden:
                return GuessResult(current_score=session.score)

            is_correct = word.text.lower() == (guess or "").lower()
            if session.revealed_words.get(word_index):
                # already revealed words earn nothing and are not logged again
                return GuessResult(
                    is_correct=is_correct,
                    is_phrase_complete=session.is_complete,
                    current_score=session.score,
                    revealed_word=word.text if is_correct else None,
                )

            points = POINTS_PER_WORD if is_correct else 0
            if is_correct:
                session.revealed_words[word_index] = True
                session.score += points

            record = session.game_record
            if record is not None:
                record.append(GuessEvent(
                    word_index=word_index,
                    guess_text=guess,
                    is_correct=is_correct,
                    points_awarded=points,
                ))
                record.score = session.score

            is_complete = session.is_complete
            if is_complete and not session.is_finished:
                session.status = GameResult.SOLVED
                if record is not None:
                    record.append(GameEndEvent(reason="solved"))
                    record.result = GameResult.SOLVED
                    record.completed_at = utcnow()
                    finished_record = record
            result = GuessResult(
                is_correct=is_correct,
                is_phrase_complete=is_complete,
                current_score=session.score,
                revealed_word=word.text if is_correct else None,
            )

        logger.info("guess_submitted", extra={
            "session_id": str(session.session_id),
            "word_index": word_index,
            "correct": is_correct,
        })
        if finished_record is not None:
            self._hand_off(session, finished_record)
        return result

    def get_game_state(self, session_id) -> GameState:
        session = self.get_game(session_id)
        if session is None:
            return GameState()
        with session.lock:
            words = []
            for w in session.phrase.words:
                revealed = not w.is_hidden or session.revealed_words.get(w.index, False)
                words.append(WordState(
                    index=w.index,
                    display_text=w.text if revealed else None,
                    is_hidden=w.is_hidden,
                    is_revealed=revealed,
                ))
            return GameState(
                session_id=session.session_id,
                words=words,
                score=session.score,
                is_complete=session.is_complete,
            )

    def give_up(self, session_id) -> GameState:
        session = self.get_game(session_id)
        if session is None:
            return GameState()
        finished_record = None
        with session.lock:
            if not session.is_finished:
                for index in session.revealed_words:
                    session.revealed_words[index] = True
                session.score = 0
                session.status = GameResult.GAVE_UP
                record = session.game_record
                if record is not None:
                    record.append(GameEndEvent(reason="gaveup"))
                    record.result = GameResult.GAVE_UP
                    record.score = 0
                    record.completed_at = utcnow()
                    finished_record = record
                logger.info("game_given_up", extra={"session_id": str(session.session_id)})
        if finished_record is not None:
            self._hand_off(session, finished_record)
        return self.get_game_state(session_id)

    def record_clue_event(self, session_id, word_index: int, search_term: str, url: str) -> None:
        session = self.get_game(session_id)
        if session is None:
            return
        with session.lock:
            if session.game_record is None or session.is_finished:
                return
            session.game_record.append(ClueEvent(word_index=word_index, search_term=search_term, url=url))

    def _hand_off(self, session: GameSession, record: GameRecord) -> None:
        if self.record_sink is None or session.user_id is None:
            return
        try:
            self.record_sink(session.user_id, record)
        except Exception as exc:
            # the in-memory game stays valid even if persisting it fails
            logger.exception("game_record_persist_failed", extra={
                "session_id": str(session.session_id),
                "error": str(exc),
            })
