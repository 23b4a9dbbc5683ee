from __future__ import annotations

import warnings
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning


DEFAULT_HEADERS = {
    "User-Agent": "WiserPinBot/1.0 (+https://wiserpin.local)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


@dataclass
class PageMetadata:
    url: str
    title: str | None = None
    og_image_url: str | None = None
    site_name: str | None = None
    description: str | None = None
    status_code: int | None = None
    error: str | None = None


def _normalize_error(exc: Exception) -> str:
    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__


def fetch_html(
    url: str, timeout: float, max_bytes: int, transport=None
) -> tuple[str, str, int]:
    with httpx.Client(
        follow_redirects=True,
        timeout=timeout,
        headers=DEFAULT_HEADERS,
        transport=transport,
    ) as client:
        with client.stream("GET", url) as response:
            status_code = response.status_code
            chunks = []
            total = 0
            for chunk in response.iter_bytes():
                total += len(chunk)
                if total > max_bytes:
                    break
                chunks.append(chunk)
            data = b"".join(chunks)
            encoding = response.encoding or "utf-8"
            return (
                data.decode(encoding, errors="ignore"),
                str(response.url),
                status_code,
            )


def _build_soup(html: str) -> BeautifulSoup:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        return BeautifulSoup(html, "lxml")


def _meta_content(soup: BeautifulSoup, *names: str) -> str | None:
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find(
            "meta", attrs={"name": name}
        )
        if tag and tag.get("content"):
            content = tag["content"].strip()
            if content:
                return content
    return None


def extract_page_metadata(html: str, base_url: str) -> PageMetadata:
    soup = _build_soup(html)

    title = _meta_content(soup, "og:title", "twitter:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip()

    image = _meta_content(soup, "og:image", "og:image:url", "twitter:image")
    if image:
        image = urljoin(base_url, image)

    site_name = _meta_content(soup, "og:site_name", "application-name")
    if not site_name:
        site_name = urlparse(base_url).netloc or None

    description = _meta_content(soup, "og:description", "description")

    return PageMetadata(
        url=base_url,
        title=title or None,
        og_image_url=image,
        site_name=site_name,
        description=description,
    )


def fetch_page_metadata(
    url: str, timeout: float = 10.0, max_bytes: int = 2500000, transport=None
) -> PageMetadata:
    """Download a page and read its title and Open Graph preview fields.

    Network and HTTP failures do not raise: the returned metadata carries only
    the URL and the error so a pin can still be saved.
    """
    try:
        html, final_url, status_code = fetch_html(
            url, timeout=timeout, max_bytes=max_bytes, transport=transport
        )
    except httpx.HTTPError as exc:
        return PageMetadata(url=url, error=_normalize_error(exc))

    if status_code >= 400:
        return PageMetadata(
            url=url, status_code=status_code, error=f"HTTP {status_code}"
        )

    metadata = extract_page_metadata(html, final_url)
    metadata.url = url
    metadata.status_code = status_code
    return metadata
