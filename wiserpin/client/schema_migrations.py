from __future__ import annotations

import logging

from sqlalchemy import inspect, text


logger = logging.getLogger(__name__)


def migrate_local_schema(store) -> bool:
    """Upgrade a version 1 local database to version 2.

    Version 1 enforced one pin per URL and had no page description column.
    Pins pulled from the cloud keep their remote id, so two ids may now share
    a URL: the unique URL index is replaced by a plain lookup index.
    """
    engine = store.engine
    if engine.dialect.name != "sqlite":
        return False

    inspector = inspect(engine)
    if not inspector.has_table("pins"):
        return False

    columns = {column["name"] for column in inspector.get_columns("pins")}
    legacy_indexes = [
        index
        for index in inspector.get_indexes("pins")
        if index.get("unique") and index.get("column_names") == ["page_url"]
    ]
    if not legacy_indexes and "page_description" in columns:
        return False

    with engine.begin() as connection:
        for index in legacy_indexes:
            connection.execute(text(f'DROP INDEX IF EXISTS "{index["name"]}"'))
        if "page_description" not in columns:
            connection.execute(text("ALTER TABLE pins ADD COLUMN page_description TEXT"))
        connection.execute(
            text(
                "CREATE INDEX IF NOT EXISTS ix_pins_page_url_lookup "
                "ON pins (page_url)"
            )
        )
    logger.info(
        "Migrated local schema to version 2 (dropped %d unique url index(es))",
        len(legacy_indexes),
    )
    return True
