"""
Clue selection: synonym lookup, web search and non-repeating URL picking.

A clue for a hidden word is a web page found by searching for one of the
word's synonyms. Within a session the same synonym is not reused for a word,
and the same URL is not handed out twice, until the alternatives run out.
"""

import html
import random
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import parse_qs, quote_plus, urlparse

import requests

from .cache import MemoryCache, get_cache
from .config import settings
from .logging_utils import get_logger

logger = get_logger("linkittydo.clues")

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
DATAMUSE_URL = "https://api.datamuse.com/words"
DUCKDUCKGO_URL = "https://html.duckduckgo.com/html/"
REFERENCE_URL = "https://en.wikipedia.org/wiki/"
SEARCH_ENGINE_MARKERS = ("duckduckgo.com", "google.com/search", "bing.com/search")

_RESULT_LINK_RE = re.compile(r'class="result__a"\s+href="([^"]+)"', re.IGNORECASE)
_DIRECT_LINK_RE = re.compile(r'href="(https?://[^"]+)"', re.IGNORECASE)


class UpstreamUnavailable(Exception):
    """Synonym or search provider failed or answered with garbage."""


def _http_session() -> requests.Session:
    s = requests.Session()
    s.headers.update({"User-Agent": USER_AGENT})
    return s


def is_valid_clue_url(url: str) -> bool:
    if not url or not url.startswith("http"):
        return False
    return not any(marker in url for marker in SEARCH_ENGINE_MARKERS)


def reference_url(term: str) -> str:
    return REFERENCE_URL + quote_plus(term)


def _extract_result_url(href: str) -> str:
    # result links are redirects: //duckduckgo.com/l/?uddg=<encoded target>&rut=...
    if "uddg=" in href:
        try:
            target = parse_qs(urlparse(html.unescape(href)).query).get("uddg")
        except ValueError:
            return ""
        if target:
            return target[0]
    if href.startswith("http"):
        return href
    return ""


def parse_search_results(page: str) -> List[str]:
    """Pull result URLs out of a DuckDuckGo HTML results page, in page order."""
    urls: List[str] = []
    for match in _RESULT_LINK_RE.finditer(page):
        url = _extract_result_url(match.group(1))
        if url:
            urls.append(url)
    for match in _DIRECT_LINK_RE.finditer(page):
        url = html.unescape(match.group(1))
        if is_valid_clue_url(url):
            urls.append(url)
    return list(dict.fromkeys(urls))


class DatamuseSynonymProvider:
    """Synonyms plus "means like" words from the Datamuse API.

    Both queries go out concurrently; results are merged case-insensitively
    and memoized in the shared MemoryCache.
    """

    def __init__(self, http: Optional[requests.Session] = None, timeout: Optional[float] = None,
                 cache: Optional[MemoryCache] = None, max_results: int = 15):
        self.http = http or _http_session()
        self.timeout = timeout if timeout is not None else settings.clue_http_timeout
        self.cache = cache if cache is not None else get_cache()
        self.max_results = max_results

    def lookup(self, word: str) -> List[str]:
        cache_key = f"synonyms:{word.lower()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return list(cached)

        queries = [
            {"rel_syn": word, "max": self.max_results},
            {"ml": word, "max": self.max_results},
        ]
        with ThreadPoolExecutor(max_workers=len(queries)) as pool:
            batches = list(pool.map(self._fetch, queries))

        merged: Dict[str, str] = {}
        for batch in batches:
            for candidate in batch:
                merged.setdefault(candidate.lower(), candidate)
        words = list(merged.values())
        if words:
            self.cache.set(cache_key, words, settings.synonym_cache_ttl)
        return words

    def _fetch(self, params: dict) -> List[str]:
        try:
            resp = self.http.get(DATAMUSE_URL, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("synonym_lookup_failed", extra={"url": DATAMUSE_URL, "error": str(exc)})
            return []
        if not isinstance(data, list):
            return []
        words = (item.get("word") for item in data if isinstance(item, dict))
        return [w for w in words if isinstance(w, str) and w]


class DuckDuckGoSearchProvider:
    def __init__(self, http: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.http = http or _http_session()
        self.timeout = timeout if timeout is not None else settings.clue_http_timeout

    def search(self, query: str) -> List[str]:
        try:
            resp = self.http.get(DUCKDUCKGO_URL, params={"q": query}, timeout=self.timeout)
            resp.raise_for_status()
            return parse_search_results(resp.text)
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamUnavailable(str(exc)) from exc


@dataclass
class ClueResult:
    url: str = ""
    search_term: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"url": self.url, "searchTerm": self.search_term}


class ClueSelector:
    def __init__(self, synonyms=None, search=None, rng: Optional[random.Random] = None):
        self.synonyms = synonyms or DatamuseSynonymProvider()
        self.search = search or DuckDuckGoSearchProvider()
        self.rng = rng or random.Random()

    def get_clue(self, session, word_index: int) -> ClueResult:
        word = session.phrase.word_at(word_index)
        if word is None or not word.is_hidden:
            return ClueResult()

        # network calls happen outside the session lock; picks happen under it
        try:
            candidates = self.synonyms.lookup(word.text)
        except UpstreamUnavailable as exc:
            logger.warning("synonym_lookup_failed", extra={"word_index": word_index, "error": str(exc)})
            candidates = []

        with session.lock:
            term = self._pick_term(word.text, candidates, session.used_terms_for(word_index))

        try:
            urls: Optional[List[str]] = self.search.search(term)
        except UpstreamUnavailable as exc:
            logger.warning("clue_search_failed", extra={"word_index": word_index, "error": str(exc)})
            urls = None

        with session.lock:
            url = self._pick_url(term, urls, session.used_clue_urls)
            if url:
                session.used_clue_urls.add(url)

        logger.info("clue_selected", extra={
            "session_id": str(session.session_id),
            "word_index": word_index,
            "url": url,
        })
        return ClueResult(url=url, search_term=term)

    def _pick_term(self, word: str, candidates: List[str], used) -> str:
        available = [c for c in candidates if c.lower() != word.lower() and c not in used]
        term = self.rng.choice(available) if available else word
        used.add(term)
        return term

    def _pick_url(self, term: str, urls: Optional[List[str]], used) -> str:
        if urls is None:
            return reference_url(term)
        fresh = [u for u in urls if u not in used and is_valid_clue_url(u)]
        if fresh:
            return self.rng.choice(fresh)
        # every result was already handed out; reuse is allowed here
        for u in urls:
            if is_valid_clue_url(u):
                return u
        return reference_url(term)
