from __future__ import annotations

from rapidfuzz import fuzz


def _safe(value: str | None) -> str:
    return (value or "").strip()


def score_pin(pin, query: str) -> tuple[float, list[str]]:
    q = query.strip().lower()
    title_l = _safe(pin.title).lower()
    description_l = _safe(pin.description).lower()
    url_l = _safe(pin.url).lower()
    tags_l = " ".join(pin.tags or []).lower()

    score = 0.0
    reasons: list[str] = []

    if q == title_l:
        score += 150
        reasons.append("exact_title")
    elif title_l.startswith(q):
        score += 120
        reasons.append("title_prefix")
    elif q in title_l:
        score += 100
        reasons.append("title_contains")

    if tags_l and q in tags_l:
        score += 90
        reasons.append("tag_match")

    if q in url_l:
        score += 60
        reasons.append("url_contains")

    if description_l and q in description_l:
        score += 45
        reasons.append("description_contains")

    fuzzy_title = fuzz.partial_ratio(q, title_l) if title_l else 0
    if fuzzy_title >= 72:
        score += fuzzy_title * 0.30
        reasons.append("title_fuzzy")

    if description_l and len(q) >= 4:
        fuzzy_description = fuzz.partial_ratio(q, description_l[:6000])
        if fuzzy_description >= 88:
            score += fuzzy_description * 0.20
            reasons.append("description_fuzzy")

    return score, reasons


def search_pins(pins, query: str, limit: int | None = None):
    if not query or not query.strip():
        return list(pins)

    ranked = []
    for pin in pins:
        score, reasons = score_pin(pin, query)
        if reasons and score > 0:
            ranked.append((score, pin))

    ranked.sort(key=lambda item: item[0], reverse=True)
    matches = [pin for _, pin in ranked]
    return matches[:limit] if limit else matches
