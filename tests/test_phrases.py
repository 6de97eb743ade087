from linkittydo.phrases import build_phrase, phrase_id_for


def test_better_late_than_never():
    p = build_phrase("Better late than never", 5)
    assert p.id == 5
    assert [w.text for w in p.words] == ["Better", "late", "than", "never"]
    assert [w.is_hidden for w in p.words] == [True, True, False, True]
    assert p.words[2].clue_search_term is None
    assert p.words[1].clue_search_term == "late"


def test_punctuation_gets_its_own_visible_slot():
    p = build_phrase("Wait, really?", 1)
    assert [(w.index, w.text, w.is_hidden) for w in p.words] == [
        (0, "Wait", True),
        (1, ",", False),
        (2, "really", True),
        (3, "?", False),
    ]


def test_every_token_hidden_xor_visible():
    p = build_phrase("All that glitters is not gold!", 3)
    for w in p.words:
        assert (w.clue_search_term is not None) == w.is_hidden
    hidden = [w.text for w in p.hidden_words]
    assert hidden == ["glitters", "gold"]


def test_word_at_bounds():
    p = build_phrase("Knowledge is power", 7)
    assert p.word_at(2).text == "power"
    assert p.word_at(3) is None
    assert p.word_at(-1) is None


def test_phrase_id_for_is_stable_and_positive():
    a = phrase_id_for("PHR-1700000000000-ABCDEF")
    assert a == phrase_id_for("PHR-1700000000000-ABCDEF")
    assert a >= 0
    assert a != phrase_id_for("PHR-1700000000000-ABCDEG")
