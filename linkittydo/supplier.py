"""
Phrase suppliers.

PhraseSupplier deals a corpus phrase the user has not played yet and falls
back to generating new phrases with the LLM once the corpus is used up.
"""

import random
from typing import Callable, Optional, Sequence

from sqlmodel import Session

from . import crud
from .config import settings
from .llm_client import generate_phrase
from .logging_utils import get_logger
from .phrases import Phrase, build_phrase, phrase_id_for

logger = get_logger("linkittydo.supplier")

DEFAULT_PHRASES = (
    "The quick brown fox jumps over the lazy dog",
    "A penny saved is a penny earned",
    "All that glitters is not gold",
    "Actions speak louder than words",
    "Better late than never",
    "Every cloud has a silver lining",
    "Knowledge is power",
    "Time flies when you are having fun",
    "Practice makes perfect",
    "Fortune favors the bold",
)


class GenerationExhausted(RuntimeError):
    """No fresh phrase could be found or generated for the user."""


class StaticPhraseSupplier:
    """Deals from a fixed list; ids are 1-based positions."""

    def __init__(self, texts: Sequence[str] = DEFAULT_PHRASES, rng: Optional[random.Random] = None):
        if not texts:
            raise ValueError("at least one phrase is required")
        self.phrases = [build_phrase(text, i) for i, text in enumerate(texts, start=1)]
        self.rng = rng or random.Random()

    def get_phrase_for_user(self, user_id: Optional[str]) -> Phrase:
        return self.rng.choice(self.phrases)


class PhraseSupplier:
    def __init__(self, engine=None, generator: Callable[[], Optional[str]] = generate_phrase,
                 rng: Optional[random.Random] = None, max_attempts: Optional[int] = None):
        self._engine = engine
        self.generator = generator
        self.rng = rng or random.Random()
        self.max_attempts = max_attempts or settings.max_generation_attempts

    @property
    def engine(self):
        return self._engine if self._engine is not None else crud.engine

    def get_phrase_for_user(self, user_id: Optional[str]) -> Phrase:
        with Session(self.engine) as db:
            played = crud.get_played_phrase_texts(db, user_id)
            corpus = crud.get_all_phrases(db)
            unplayed = [p for p in corpus if crud.normalize_text(p.text) not in played]
            if unplayed:
                chosen = self.rng.choice(unplayed)
                logger.info("phrase_selected", extra={"user_id": user_id, "phrase_id": chosen.unique_id})
                return build_phrase(chosen.text, phrase_id_for(chosen.unique_id))

            known = {crud.normalize_text(p.text) for p in corpus}
            for attempt in range(1, self.max_attempts + 1):
                text = self.generator()
                if not text:
                    logger.warning("phrase_generation_empty", extra={"attempt": attempt})
                    continue
                normalized = crud.normalize_text(text)
                if normalized in known or normalized in played:
                    logger.info("phrase_generation_duplicate", extra={"attempt": attempt})
                    continue
                if not build_phrase(text, 0).hidden_words:
                    logger.warning("phrase_generation_no_hidden_words", extra={"attempt": attempt})
                    continue
                gp = crud.create_phrase(db, text, generated_by_llm=True)
                logger.info("phrase_generated", extra={"user_id": user_id, "phrase_id": gp.unique_id})
                return build_phrase(gp.text, phrase_id_for(gp.unique_id))

        logger.error("phrase_generation_exhausted", extra={"user_id": user_id, "attempt": self.max_attempts})
        raise GenerationExhausted(f"Unable to generate a unique phrase after {self.max_attempts} attempts")
