"""
Playable phrase structures.

A Phrase is built once from raw text and never mutated afterwards, so the same
instance can be shared read-only by every session that is dealt it.
"""

import zlib
from dataclasses import dataclass, field
from typing import Optional

from .tokenizer import tokenize, is_stop_word, is_punctuation_token


@dataclass(frozen=True)
class PhraseWord:
    index: int
    text: str
    is_hidden: bool
    clue_search_term: Optional[str] = None


@dataclass(frozen=True)
class Phrase:
    id: int
    full_text: str
    words: tuple[PhraseWord, ...] = field(default_factory=tuple)

    def word_at(self, index: int) -> Optional[PhraseWord]:
        if 0 <= index < len(self.words):
            return self.words[index]
        return None

    @property
    def hidden_words(self) -> list[PhraseWord]:
        return [w for w in self.words if w.is_hidden]


def build_phrase(raw_text: str, phrase_id: int) -> Phrase:
    # every content word is hidden; index counts punctuation tokens too
    words = []
    for i, token in enumerate(tokenize(raw_text)):
        hidden = not is_stop_word(token) and not is_punctuation_token(token)
        words.append(PhraseWord(
            index=i,
            text=token,
            is_hidden=hidden,
            clue_search_term=token if hidden else None,
        ))
    return Phrase(id=phrase_id, full_text=raw_text, words=tuple(words))


def phrase_id_for(unique_id: str) -> int:
    """Stable positive integer id for a corpus phrase unique id."""
    return zlib.crc32(unique_id.encode("utf-8")) & 0x7FFFFFFF
