"""One bidirectional pass between the local store and the backend.

A record counts as synced when its id is present on the other side. Field
content is never compared: two records sharing an id are taken as the same
record, and edits made after the first sync are not carried over. Deletes are
not propagated either.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from wiserpin.client.errors import AuthError, OfflineError, PartialSyncError
from wiserpin.client.records import (
    DEFAULT_COLLECTION_COLOR,
    LocalCollection,
    LocalPin,
    PagePreview,
    RemoteCollection,
    RemotePin,
    Summary,
    utcnow,
)


logger = logging.getLogger(__name__)

ENTITY_COLLECTION = "collection"
ENTITY_PIN = "pin"

OUTCOME_CREATED = "created"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"


@dataclass
class PushOutcome:
    entity_type: str
    record_id: str
    status: str
    reason: str | None = None
    auth_rejected: bool = False

    @property
    def failed(self) -> bool:
        return self.status == OUTCOME_FAILED


@dataclass
class PullResult:
    collection_ids: list[str] = field(default_factory=list)
    pin_ids: list[str] = field(default_factory=list)


@dataclass
class SyncReport:
    pulled: PullResult = field(default_factory=PullResult)
    pushed: list[PushOutcome] = field(default_factory=list)

    def count(self, entity_type: str, status: str) -> int:
        return sum(
            1
            for outcome in self.pushed
            if outcome.entity_type == entity_type and outcome.status == status
        )

    @property
    def failures(self) -> list[PushOutcome]:
        return [outcome for outcome in self.pushed if outcome.failed]


def collection_to_local(remote: RemoteCollection) -> LocalCollection:
    created_at = remote.created_at or utcnow()
    return LocalCollection(
        id=remote.id,
        name=remote.name,
        goal=remote.description or "",
        color=remote.color or DEFAULT_COLLECTION_COLOR,
        created_at=created_at,
        updated_at=created_at,
    )


def pin_to_local(remote: RemotePin) -> LocalPin:
    created_at = remote.created_at or utcnow()
    summary = None
    if remote.description:
        summary = Summary(text=remote.description, created_at=created_at)
    return LocalPin(
        id=remote.id,
        collection_id=remote.collection_id or "",
        page=PagePreview(
            url=remote.url,
            title=remote.title,
            og_image_url=remote.image_url,
        ),
        summary=summary,
        created_at=created_at,
    )


def collection_to_remote(local: LocalCollection) -> dict:
    return {
        "id": local.id,
        "name": local.name,
        "description": local.goal or None,
        "color": local.color,
    }


def pin_to_remote(local: LocalPin) -> dict:
    description = local.summary.text if local.summary else None
    return {
        "id": local.id,
        "url": local.page.url,
        "title": local.page.title or "",
        "description": description or local.note or None,
        "imageUrl": local.page.og_image_url or None,
        "tags": [],
        "collectionId": local.collection_id,
    }


class ReconciliationEngine:
    def __init__(self, store, remote, token_provider, is_online=None):
        self.store = store
        self.remote = remote
        self.token_provider = token_provider
        self.is_online = is_online or remote.is_reachable

    def check_preconditions(self) -> None:
        if not self.is_online():
            raise OfflineError()
        if not self.token_provider.get_token():
            raise AuthError()

    def run(self) -> SyncReport:
        """Pull, then push.

        Raises AuthError once every record has been attempted if the backend
        rejected the token for any of them, otherwise PartialSyncError if any
        push failed.
        """
        self.check_preconditions()

        logger.info("Pulling remote changes")
        pulled = self.pull()
        logger.info("Pushing local changes")
        pushed = self.push()

        report = SyncReport(pulled=pulled, pushed=pushed)
        rejected = [outcome for outcome in pushed if outcome.auth_rejected]
        if rejected:
            raise AuthError(rejected[0].reason)
        if report.failures:
            raise PartialSyncError(pushed)
        return report

    def pull(self) -> PullResult:
        remote_collections = self.remote.list_collections()
        remote_pins = self.remote.list_pins()
        local_collection_ids = {c.id for c in self.store.list_collections()}
        local_pin_ids = {p.id for p in self.store.list_pins()}

        logger.info(
            "Pull: %d remote / %d local collections, %d remote / %d local pins",
            len(remote_collections),
            len(local_collection_ids),
            len(remote_pins),
            len(local_pin_ids),
        )

        result = PullResult()
        for remote_collection in remote_collections:
            if remote_collection.id in local_collection_ids:
                continue
            self.store.add_collection(collection_to_local(remote_collection))
            local_collection_ids.add(remote_collection.id)
            result.collection_ids.append(remote_collection.id)

        for remote_pin in remote_pins:
            if remote_pin.id in local_pin_ids:
                continue
            self.store.add_pin(pin_to_local(remote_pin))
            local_pin_ids.add(remote_pin.id)
            result.pin_ids.append(remote_pin.id)

        logger.info(
            "Pulled %d new collections and %d new pins",
            len(result.collection_ids),
            len(result.pin_ids),
        )
        return result

    def push(self) -> list[PushOutcome]:
        local_collections = self.store.list_collections()
        local_pins = self.store.list_pins()
        remote_collection_ids = {c.id for c in self.remote.list_collections()}
        remote_pin_ids = {p.id for p in self.remote.list_pins()}

        logger.info(
            "Push: %d local / %d remote collections, %d local / %d remote pins",
            len(local_collections),
            len(remote_collection_ids),
            len(local_pins),
            len(remote_pin_ids),
        )

        outcomes: list[PushOutcome] = []
        for collection in local_collections:
            if collection.id in remote_collection_ids:
                continue
            outcomes.append(
                self._push_one(
                    ENTITY_COLLECTION,
                    collection.id,
                    self.remote.create_collection,
                    collection_to_remote(collection),
                )
            )

        for pin in local_pins:
            if pin.id in remote_pin_ids:
                continue
            if not pin.is_syncable:
                logger.info("Skipping invalid pin %s", pin.id)
                outcomes.append(
                    PushOutcome(ENTITY_PIN, pin.id, OUTCOME_SKIPPED, "invalid")
                )
                continue
            outcomes.append(
                self._push_one(
                    ENTITY_PIN, pin.id, self.remote.create_pin, pin_to_remote(pin)
                )
            )

        created = sum(1 for outcome in outcomes if outcome.status == OUTCOME_CREATED)
        failed = sum(1 for outcome in outcomes if outcome.failed)
        logger.info("Pushed %d new records, %d failed", created, failed)
        return outcomes

    def _push_one(self, entity_type: str, record_id: str, create, payload: dict):
        try:
            create(payload)
        except AuthError as exc:
            logger.error(
                "Push of %s %s rejected as unauthenticated: %s",
                entity_type,
                record_id,
                exc,
            )
            return PushOutcome(
                entity_type, record_id, OUTCOME_FAILED, str(exc), auth_rejected=True
            )
        except Exception as exc:
            logger.error("Failed to push %s %s: %s", entity_type, record_id, exc)
            return PushOutcome(entity_type, record_id, OUTCOME_FAILED, str(exc))
        logger.debug("Pushed new %s %s", entity_type, record_id)
        return PushOutcome(entity_type, record_id, OUTCOME_CREATED)
