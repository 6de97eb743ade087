from typing import Dict, List, Optional

import requests

from .config import settings
from .logging_utils import get_logger

logger = get_logger("linkittydo.llm")

MIN_PHRASE_WORDS = 2
MAX_PHRASE_WORDS = 7

SYSTEM_PROMPT = (
    "You are a phrase generator for a word guessing game. "
    "Your task is to generate well-known phrases, idioms, proverbs, or common sayings.\n"
    "Rules:\n"
    f"- The phrase must be {MAX_PHRASE_WORDS} words or less\n"
    "- Use common, well-known phrases that most English speakers would recognize\n"
    "- Do not include quotes around the phrase\n"
    "- Return ONLY the phrase, nothing else\n"
    "- Do not include explanations or context"
)

USER_PROMPT = (
    "Generate a single well-known English phrase, idiom, proverb, or common saying "
    f"that is {MAX_PHRASE_WORDS} words or less.\n"
    "Examples of good phrases:\n"
    "- Actions speak louder than words\n"
    "- Better late than never\n"
    "- Knowledge is power\n"
    "- Practice makes perfect\n"
    "- Time is money\n\n"
    "Return only the phrase with no quotes or additional text."
)


class LlmUnavailable(RuntimeError):
    pass


def _post_chat(messages: List[Dict]) -> str:
    if not settings.openrouter_api_key:
        raise LlmUnavailable("OPENROUTER_API_KEY is not configured")

    headers = {
        "Authorization": f"Bearer {settings.openrouter_api_key}",
        "Content-Type": "application/json",
        "X-Title": settings.APP_NAME,
    }
    payload = {"model": settings.openrouter_model, "messages": messages}
    try:
        resp = requests.post(settings.openrouter_base_url, headers=headers, json=payload, timeout=60)
        resp.raise_for_status()
        data = resp.json()
        return data["choices"][0]["message"]["content"] or ""
    except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
        raise LlmUnavailable(str(exc)) from exc


def clean_generated_phrase(content: str) -> Optional[str]:
    """Strip wrapping quotes/punctuation and enforce the word-count window."""
    phrase = (content or "").strip().strip("\"'.!?").strip()
    if not phrase:
        return None
    word_count = len(phrase.split())
    if word_count > MAX_PHRASE_WORDS or word_count < MIN_PHRASE_WORDS:
        logger.warning("phrase_rejected", extra={"error": f"{word_count} words: {phrase}"})
        return None
    return phrase


def generate_phrase() -> Optional[str]:
    """Ask the model for one phrase. Returns None when nothing usable came back."""
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": USER_PROMPT},
    ]
    try:
        content = _post_chat(messages)
    except LlmUnavailable as exc:
        logger.warning("llm_call_failed", extra={"error": str(exc)})
        return None
    return clean_generated_phrase(content)
