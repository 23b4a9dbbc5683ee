from urllib.parse import urlparse


def parse_tags(raw) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, (list, tuple)):
        raw = ",".join(str(item) for item in raw if item is not None)
    tokens = [t.strip().lower() for t in str(raw).replace(";", ",").split(",")]
    return sorted({t for t in tokens if t})


def clean_text(value, max_length: int | None = None) -> str | None:
    text = (value or "").strip() if isinstance(value, str) else ""
    if not text or text.lower() == "none":
        return None
    if max_length is not None:
        text = text[:max_length]
    return text


def is_http_url(url: str) -> bool:
    if not url:
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
