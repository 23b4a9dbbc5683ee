import httpx
import pytest

from wiserpin.client.capture import capture_pin
from wiserpin.client.errors import NotFoundError
from wiserpin.client.records import LocalCollection
from wiserpin.services.content import (
    PageMetadata,
    extract_page_metadata,
    fetch_page_metadata,
)


ARTICLE_HTML = """
<html>
  <head>
    <title>Fallback title</title>
    <meta property="og:title" content="Open Graph title" />
    <meta property="og:image" content="/images/cover.png" />
    <meta name="description" content="A short description" />
  </head>
  <body><p>Hello</p></body>
</html>
"""


def test_extract_prefers_open_graph_fields():
    metadata = extract_page_metadata(ARTICLE_HTML, "https://blog.example.com/post/1")

    assert metadata.title == "Open Graph title"
    assert metadata.og_image_url == "https://blog.example.com/images/cover.png"
    assert metadata.site_name == "blog.example.com"
    assert metadata.description == "A short description"


def test_extract_falls_back_to_title_tag():
    html = "<html><head><title> Plain page </title></head><body></body></html>"

    metadata = extract_page_metadata(html, "https://example.com/")

    assert metadata.title == "Plain page"
    assert metadata.og_image_url is None


def test_fetch_reads_metadata_through_transport():
    def handler(request):
        return httpx.Response(
            200,
            text=ARTICLE_HTML,
            headers={"Content-Type": "text/html; charset=utf-8"},
        )

    metadata = fetch_page_metadata(
        "https://blog.example.com/post/1", transport=httpx.MockTransport(handler)
    )

    assert metadata.error is None
    assert metadata.status_code == 200
    assert metadata.title == "Open Graph title"


def test_fetch_reports_http_errors_without_raising():
    def handler(request):
        return httpx.Response(404, text="missing")

    metadata = fetch_page_metadata(
        "https://example.com/gone", transport=httpx.MockTransport(handler)
    )

    assert metadata.error == "HTTP 404"
    assert metadata.title is None


def test_fetch_reports_network_errors_without_raising():
    def handler(request):
        raise httpx.ConnectError("name resolution failed", request=request)

    metadata = fetch_page_metadata(
        "https://offline.example.com", transport=httpx.MockTransport(handler)
    )

    assert metadata.url == "https://offline.example.com"
    assert metadata.error == "name resolution failed"


def test_capture_pin_fills_preview(store):
    store.add_collection(LocalCollection(id="c1", name="Reading"))

    def fake_fetch(url, timeout, max_bytes):
        return PageMetadata(
            url=url,
            title="Example",
            og_image_url="https://example.com/cover.png",
            site_name="example.com",
            description="About the example",
        )

    pin = capture_pin(store, "https://example.com", "c1", fetch=fake_fetch)

    saved = store.get_pin(pin.id)
    assert saved.page.title == "Example"
    assert saved.page.og_image_url == "https://example.com/cover.png"
    assert saved.note == "About the example"


def test_capture_pin_keeps_url_when_fetch_fails(store):
    store.add_collection(LocalCollection(id="c1", name="Reading"))

    def failing_fetch(url, timeout, max_bytes):
        return PageMetadata(url=url, error="timed out")

    pin = capture_pin(
        store, "https://example.com", "c1", note="Read later", fetch=failing_fetch
    )

    saved = store.get_pin(pin.id)
    assert saved.page.url == "https://example.com"
    assert saved.page.title is None
    assert saved.note == "Read later"


def test_capture_pin_requires_collection(store):
    with pytest.raises(NotFoundError):
        capture_pin(store, "https://example.com", "missing", fetch=lambda *a, **k: None)
