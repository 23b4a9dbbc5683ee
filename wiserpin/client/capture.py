from __future__ import annotations

import logging

from wiserpin.client.errors import NotFoundError
from wiserpin.client.records import LocalPin, PagePreview
from wiserpin.services.content import fetch_page_metadata


logger = logging.getLogger(__name__)


def capture_pin(
    store,
    url: str,
    collection_id: str,
    note: str | None = None,
    timeout: float = 10.0,
    max_bytes: int = 2500000,
    fetch=fetch_page_metadata,
) -> LocalPin:
    """Save ``url`` into a local collection, filling the page preview from the web."""
    if store.get_collection(collection_id) is None:
        raise NotFoundError("Collection", collection_id)

    metadata = fetch(url, timeout=timeout, max_bytes=max_bytes)
    if metadata.error:
        logger.warning("Could not read page metadata for %s: %s", url, metadata.error)

    pin = LocalPin(
        collection_id=collection_id,
        page=PagePreview(
            url=url,
            title=metadata.title,
            og_image_url=metadata.og_image_url,
            site_name=metadata.site_name,
            description=metadata.description,
        ),
        note=note or metadata.description,
    )
    store.add_pin(pin)
    return pin
