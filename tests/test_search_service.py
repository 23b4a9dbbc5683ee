from types import SimpleNamespace

from wiserpin.services.search import search_pins


def _pin(title: str, tags=None, description: str = "", url: str = "https://example.com"):
    return SimpleNamespace(
        title=title,
        description=description,
        url=url,
        tags=list(tags or []),
    )


def test_search_filters_irrelevant_items():
    pins = [
        _pin("Python docs"),
        _pin("Gardening tips"),
        _pin("Travel planning"),
    ]

    results = search_pins(pins, "python")

    assert [pin.title for pin in results] == ["Python docs"]


def test_search_keeps_high_confidence_fuzzy_matches():
    pins = [
        _pin("Python documentation"),
        _pin("Rust cookbook"),
    ]

    results = search_pins(pins, "pythn")

    assert results
    assert results[0].title == "Python documentation"


def test_search_matches_description_and_tags():
    pins = [
        _pin("Weekly roundup", description="Release notes for flask 3.1"),
        _pin("Framework list", tags=["flask", "web"]),
        _pin("Other"),
    ]

    assert [pin.title for pin in search_pins(pins, "flask 3.1")] == ["Weekly roundup"]
    assert "Framework list" in [pin.title for pin in search_pins(pins, "flask")]


def test_empty_query_returns_everything():
    pins = [_pin("One"), _pin("Two")]

    assert search_pins(pins, "  ") == pins
