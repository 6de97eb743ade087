from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlmodel import Session
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware

from . import crud
from .cache import get_cache
from .clues import ClueSelector
from .config import settings
from .deps import get_session, get_game_service, get_clue_selector
from .game import DEFAULT_DIFFICULTY, GameService
from .logging_utils import setup_logging, get_logger, request_id_ctx
from .supplier import GenerationExhausted

import logging
import re
import time
import uuid


setup_logging(logging.INFO)
logger = get_logger("linkittydo")
app = FastAPI(title="LinkittyDo API")

SESSION_NOT_FOUND = "Game session not found"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_ctx.set(rid)
        start = time.time()
        client = request.client.host if request.client else "-"
        response = None
        try:
            response = await call_next(request)
            return response
        except Exception:
            logger.exception("request_error", extra={"path": str(request.url), "method": request.method})
            raise
        finally:
            duration_ms = int((time.time() - start) * 1000)
            status = getattr(response, "status_code", 500)
            logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": status,
                    "duration_ms": duration_ms,
                    "client": client,
                    "user_agent": request.headers.get("user-agent", "-"),
                },
            )
            if response is not None:
                response.headers["X-Request-ID"] = rid
            request_id_ctx.reset(token)


app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Accept", "Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("validation_error", extra={"method": request.method, "path": request.url.path, "errors": str(exc.errors())})
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(exc.errors()), "message": "Input validation failed"},
    )


@app.on_event("startup")
def on_startup():
    from .init_db import init_db

    # tests point crud.engine at their own database before the app starts
    if crud.engine is None:
        crud.engine = init_db(settings.database_url)


@app.get("/health", include_in_schema=False)
def health():
    return JSONResponse({"status": "ok"})


@app.get("/api/cache/stats", include_in_schema=False)
def cache_stats():
    return JSONResponse({"cache_stats": get_cache().get_stats(), "status": "ok"})


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StartGameRequest(_CamelModel):
    user_id: Optional[str] = Field(None, alias="userId", max_length=64)
    difficulty: Optional[int] = Field(None, ge=0, le=100)


class GuessRequest(_CamelModel):
    word_index: int = Field(..., alias="wordIndex")
    guess: str = Field("", max_length=100)


class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: str = Field(..., max_length=254)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError('Name must be between 2 and 50 characters')
        if not re.match(r'^[a-zA-Z0-9\s_-]+$', v):
            raise ValueError('Name can only contain letters, numbers, spaces, underscores, and hyphens')
        return v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = v.strip().lower()
        if not re.match(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', v):
            raise ValueError('Invalid email format')
        return v


class DifficultyRequest(BaseModel):
    difficulty: int = Field(..., ge=0, le=100)


def _user_payload(u) -> dict:
    return {
        "uniqueId": u.unique_id,
        "name": u.name,
        "email": u.email,
        "lifetimePoints": u.lifetime_points,
        "preferredDifficulty": u.preferred_difficulty,
        "createdAt": u.created_at.isoformat() if u.created_at else None,
    }


def _require_game(service: GameService, session_id: str):
    gs = service.get_game(session_id)
    if gs is None:
        raise HTTPException(status_code=404, detail=SESSION_NOT_FOUND)
    return gs


@app.post("/api/game/start")
def start_game(
    body: Optional[StartGameRequest] = None,
    session: Session = Depends(get_session),
    service: GameService = Depends(get_game_service),
):
    body = body or StartGameRequest()
    user_id = (body.user_id or "").strip() or None
    difficulty = body.difficulty
    if user_id:
        user = crud.get_user(session, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if difficulty is None:
            difficulty = user.preferred_difficulty
    if difficulty is None:
        difficulty = DEFAULT_DIFFICULTY

    try:
        gs = service.start_game(user_id, difficulty)
    except GenerationExhausted as exc:
        logger.error("game_start_failed", extra={"user_id": user_id, "error": str(exc)})
        raise HTTPException(status_code=503, detail="No phrase available, try again later")

    if gs.game_record is not None:
        crud.save_game_record(session, user_id, gs.game_record)
    return service.get_game_state(gs.session_id).to_dict()


@app.get("/api/game/{session_id}")
def get_game(session_id: str, service: GameService = Depends(get_game_service)):
    _require_game(service, session_id)
    return service.get_game_state(session_id).to_dict()


@app.post("/api/game/{session_id}/guess")
def submit_guess(session_id: str, body: GuessRequest, service: GameService = Depends(get_game_service)):
    _require_game(service, session_id)
    return service.submit_guess(session_id, body.word_index, body.guess).to_dict()


@app.post("/api/game/{session_id}/giveup")
def give_up(session_id: str, service: GameService = Depends(get_game_service)):
    _require_game(service, session_id)
    return service.give_up(session_id).to_dict()


@app.get("/api/clue/{session_id}/{word_index}")
def get_clue(
    session_id: str,
    word_index: int,
    service: GameService = Depends(get_game_service),
    selector: ClueSelector = Depends(get_clue_selector),
):
    gs = _require_game(service, session_id)
    word = gs.phrase.word_at(word_index)
    if word is None:
        raise HTTPException(status_code=404, detail="Word not found")
    if not word.is_hidden:
        raise HTTPException(status_code=400, detail="Word is not hidden, no clue needed")
    if gs.is_finished:
        raise HTTPException(status_code=400, detail="Game is already finished")

    clue = selector.get_clue(gs, word_index)
    service.record_clue_event(session_id, word_index, clue.search_term, clue.url)
    return clue.to_dict()


@app.post("/api/user", status_code=201)
def create_user(body: CreateUserRequest, session: Session = Depends(get_session)):
    try:
        u = crud.create_user(session, body.name, body.email)
    except ValueError as exc:
        code = str(exc)
        message = {
            "NAME_TAKEN": "This name is already taken. Please choose a different name.",
            "EMAIL_TAKEN": "This email is already registered. Please use a different email.",
        }.get(code, code)
        raise HTTPException(status_code=409, detail={"code": code, "message": message})
    logger.info("user_created", extra={"user_id": u.unique_id})
    return _user_payload(u)


@app.get("/api/user/{user_id}")
def get_user(user_id: str, session: Session = Depends(get_session)):
    u = crud.get_user(session, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return _user_payload(u)


@app.get("/api/user/{user_id}/games")
def get_user_games(user_id: str, session: Session = Depends(get_session)):
    if not crud.get_user(session, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return {"userId": user_id, "games": crud.get_user_games(session, user_id)}


@app.put("/api/user/{user_id}/difficulty")
def update_difficulty(user_id: str, body: DifficultyRequest, session: Session = Depends(get_session)):
    u = crud.update_difficulty(session, user_id, body.difficulty)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return _user_payload(u)


@app.get("/api/phrases/count")
def phrase_count(session: Session = Depends(get_session)):
    return {"count": crud.get_phrase_count(session)}
