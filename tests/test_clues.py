import random

import pytest
import requests

from linkittydo.cache import MemoryCache
from linkittydo.clues import (
    ClueSelector,
    DatamuseSynonymProvider,
    DuckDuckGoSearchProvider,
    UpstreamUnavailable,
    is_valid_clue_url,
    parse_search_results,
    reference_url,
)
from linkittydo.game import GameService
from linkittydo.supplier import StaticPhraseSupplier


class FakeSynonyms:
    def __init__(self, words):
        self.words = list(words)
        self.calls = []

    def lookup(self, word):
        self.calls.append(word)
        return list(self.words)


class FakeSearch:
    def __init__(self, urls=None, fail=False):
        self.urls = list(urls or [])
        self.fail = fail
        self.queries = []

    def search(self, query):
        self.queries.append(query)
        if self.fail:
            raise UpstreamUnavailable("offline")
        return list(self.urls)


def new_session(text="Better late than never"):
    svc = GameService(StaticPhraseSupplier([text]))
    return svc.start_game()


def selector(words, urls=None, fail=False):
    return ClueSelector(FakeSynonyms(words), FakeSearch(urls, fail), rng=random.Random(7))


def test_visible_or_missing_word_gets_empty_clue():
    gs = new_session()
    sel = selector(["tardy"], ["https://a.com"])
    assert sel.get_clue(gs, 2).to_dict() == {"url": "", "searchTerm": ""}
    assert sel.get_clue(gs, 99).to_dict() == {"url": "", "searchTerm": ""}
    assert sel.search.queries == []


def test_search_terms_do_not_repeat_until_exhausted():
    gs = new_session()
    sel = selector(["tardy", "overdue", "belated", "late", "LATE"], ["https://a.com"])
    terms = [sel.get_clue(gs, 1).search_term for _ in range(3)]
    assert sorted(terms) == ["belated", "overdue", "tardy"]
    # only the word itself is left
    assert sel.get_clue(gs, 1).search_term == "late"
    assert sel.get_clue(gs, 1).search_term == "late"


def test_used_terms_are_per_word():
    gs = new_session()
    sel = selector(["soon"], ["https://a.com", "https://b.com"])
    assert sel.get_clue(gs, 0).search_term == "soon"
    assert sel.get_clue(gs, 1).search_term == "soon"
    assert sel.get_clue(gs, 0).search_term == "Better"


def test_used_terms_compare_case_insensitively():
    gs = new_session()
    sel = selector(["Tardy"], ["https://a.com"])
    assert sel.get_clue(gs, 1).search_term == "Tardy"
    sel.synonyms.words = ["tardy"]
    assert sel.get_clue(gs, 1).search_term == "late"


def test_urls_do_not_repeat_until_exhausted():
    gs = new_session()
    sel = selector(["a", "b", "c"], ["https://a.com", "https://b.com"])
    first = sel.get_clue(gs, 1).url
    second = sel.get_clue(gs, 1).url
    assert {first, second} == {"https://a.com", "https://b.com"}
    # everything used: first valid raw result is reused
    assert sel.get_clue(gs, 1).url == "https://a.com"
    assert "HTTPS://A.COM" in gs.used_clue_urls


def test_urls_are_unique_across_words():
    gs = new_session()
    sel = selector(["x"], ["https://a.com", "https://b.com", "https://c.com"])
    urls = {sel.get_clue(gs, i).url for i in (0, 1, 3)}
    assert len(urls) == 3


def test_search_engine_and_non_http_urls_are_filtered():
    gs = new_session()
    urls = [
        "https://duckduckgo.com/about",
        "https://www.google.com/search?q=late",
        "https://www.bing.com/search?q=late",
        "ftp://files.example.com/late",
        "https://ok.org/late",
    ]
    sel = selector(["tardy"], urls)
    assert sel.get_clue(gs, 1).url == "https://ok.org/late"


def test_search_failure_falls_back_to_reference_page():
    gs = new_session()
    sel = selector(["running late"], fail=True)
    clue = sel.get_clue(gs, 1)
    assert clue.search_term == "running late"
    assert clue.url == "https://en.wikipedia.org/wiki/running+late"
    assert clue.url in gs.used_clue_urls


def test_no_results_falls_back_to_reference_page():
    gs = new_session()
    sel = selector([], [])
    clue = sel.get_clue(gs, 3)
    assert clue.search_term == "never"
    assert clue.url == reference_url("never")


def test_synonym_provider_failure_uses_the_word():
    class Broken:
        def lookup(self, word):
            raise UpstreamUnavailable("down")

    gs = new_session()
    sel = ClueSelector(Broken(), FakeSearch(["https://a.com"]), rng=random.Random(1))
    assert sel.get_clue(gs, 1).to_dict() == {"url": "https://a.com", "searchTerm": "late"}


def test_is_valid_clue_url():
    assert is_valid_clue_url("http://example.com")
    assert not is_valid_clue_url("")
    assert not is_valid_clue_url("/relative")
    assert not is_valid_clue_url("https://html.duckduckgo.com/html/?q=x")


def test_parse_search_results():
    page = """
    <a rel="nofollow" class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fexample.com%2Fpage&amp;rut=abc">Example</a>
    <a class="result__url" href="https://other.org/a?x=1&amp;y=2">other.org</a>
    <a class="result__a" href="https://example.com/page">dup</a>
    <a href="https://duckduckgo.com/settings">settings</a>
    """
    assert parse_search_results(page) == ["https://example.com/page", "https://other.org/a?x=1&y=2"]


class FakeResponse:
    def __init__(self, payload=None, text=""):
        self.payload = payload
        self.text = text

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


class FakeHttp:
    def __init__(self, routes=None, error=None):
        self.routes = routes or {}
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, dict(params or {}), timeout))
        if self.error is not None:
            raise self.error
        for key, value in self.routes.items():
            if key in (params or {}):
                return value
        return FakeResponse([])


def test_datamuse_merges_queries_and_caches():
    http = FakeHttp({
        "rel_syn": FakeResponse([{"word": "tardy", "score": 10}, {"word": "Belated"}]),
        "ml": FakeResponse([{"word": "belated"}, {"word": "overdue"}, {"score": 3}]),
    })
    provider = DatamuseSynonymProvider(http=http, timeout=5, cache=MemoryCache())
    assert provider.lookup("late") == ["tardy", "Belated", "overdue"]
    assert len(http.calls) == 2
    assert all(timeout == 5 for _, _, timeout in http.calls)
    assert provider.lookup("LATE") == ["tardy", "Belated", "overdue"]
    assert len(http.calls) == 2


def test_datamuse_network_error_returns_empty():
    http = FakeHttp(error=requests.ConnectionError("no route"))
    cache = MemoryCache()
    provider = DatamuseSynonymProvider(http=http, timeout=1, cache=cache)
    assert provider.lookup("late") == []
    assert cache.get("synonyms:late") is None


def test_duckduckgo_provider_parses_and_raises():
    page = '<a class="result__a" href="https://example.com/x">x</a>'
    ok = DuckDuckGoSearchProvider(http=FakeHttp({"q": FakeResponse(text=page)}), timeout=1)
    assert ok.search("tardy") == ["https://example.com/x"]

    broken = DuckDuckGoSearchProvider(http=FakeHttp(error=requests.Timeout("slow")), timeout=1)
    with pytest.raises(UpstreamUnavailable):
        broken.search("tardy")


def test_datamuse_non_string_words_fall_back_to_the_word():
    http = FakeHttp({
        "rel_syn": FakeResponse([{"word": 5}, {"word": ""}, "tardy"]),
        "ml": FakeResponse([{"word": ["belated"]}, {"word": None}]),
    })
    provider = DatamuseSynonymProvider(http=http, timeout=1, cache=MemoryCache())
    sel = ClueSelector(provider, FakeSearch(["https://example.com/late"]), rng=random.Random(7))
    clue = sel.get_clue(new_session(), 1)
    assert clue.to_dict() == {"url": "https://example.com/late", "searchTerm": "late"}


def test_duckduckgo_malformed_link_falls_back_to_reference_page():
    page = '<a class="result__a" href="//[bad/l/?uddg=x">x</a>'
    search = DuckDuckGoSearchProvider(http=FakeHttp({"q": FakeResponse(text=page)}), timeout=1)
    assert search.search("late") == []

    sel = ClueSelector(FakeSynonyms([]), search, rng=random.Random(7))
    clue = sel.get_clue(new_session(), 1)
    assert clue.to_dict() == {"url": "https://en.wikipedia.org/wiki/late", "searchTerm": "late"}


def test_parse_search_results_skips_malformed_links():
    page = (
        '<a class="result__a" href="//[bad/l/?uddg=x">x</a>'
        '<a class="result__a" href="https://example.com/ok">ok</a>'
    )
    assert parse_search_results(page) == ["https://example.com/ok"]
