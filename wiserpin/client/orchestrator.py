from __future__ import annotations

import logging
import threading

from wiserpin.client.errors import AuthError, SyncDisabledError, WiserPinError
from wiserpin.client.messaging import MessageType
from wiserpin.client.records import SyncSettings, SyncStatus, utcnow


logger = logging.getLogger(__name__)

SYNC_STATUS_KEY = "wiserpin_sync_status"
SYNC_SETTINGS_KEY = "wiserpin_sync_settings"
AUTO_SYNC_JOB_ID = "auto_sync"


def start_in_thread(func) -> None:
    worker = threading.Thread(target=func, daemon=True, name="wiserpin-sync")
    worker.start()


class SyncOrchestrator:
    """Owns sync settings and status, the auto-sync timer and the in-flight guard."""

    def __init__(
        self,
        store,
        engine,
        token_provider,
        bus=None,
        scheduler=None,
        clock=utcnow,
    ):
        self.store = store
        self.engine = engine
        self.token_provider = token_provider
        self.bus = bus
        self.scheduler = scheduler
        self.clock = clock
        self._sync_lock = threading.Lock()

    # Settings and status

    def get_settings(self) -> SyncSettings:
        return SyncSettings.from_dict(self.store.get_item(SYNC_SETTINGS_KEY))

    def update_settings(self, **changes) -> SyncSettings:
        updated = self.get_settings().merged(**changes)
        self.store.set_item(SYNC_SETTINGS_KEY, updated.to_dict())

        if updated.enabled and updated.auto_sync:
            self.start_auto_sync()
        else:
            self.stop_auto_sync()
        return updated

    def get_status(self) -> SyncStatus:
        return SyncStatus.from_dict(self.store.get_item(SYNC_STATUS_KEY))

    def _update_status(self, **changes) -> SyncStatus:
        status = self.get_status()
        for name, value in changes.items():
            setattr(status, name, value)
        self.store.set_item(SYNC_STATUS_KEY, status.to_dict())

        if self.bus is not None:
            self.bus.broadcast(
                {"type": MessageType.SYNC_STATUS_CHANGED, "status": status.to_dict()}
            )
        return status

    # Lifecycle

    def initialize(self) -> None:
        settings = self.get_settings()
        if self.get_status().is_syncing:
            # A previous process died mid-pass.
            self._update_status(is_syncing=False)
        if settings.enabled and settings.auto_sync:
            self.start_auto_sync()
        if settings.enabled:
            self.sync_quietly()

    def enable(self):
        self.update_settings(enabled=True)
        return self.sync()

    def disable(self) -> None:
        self.update_settings(enabled=False)
        self.stop_auto_sync()

    def start_auto_sync(self) -> None:
        self.stop_auto_sync()
        if self.scheduler is None:
            return
        settings = self.get_settings()
        if settings.enabled and settings.auto_sync:
            self.scheduler.add_job(
                self.sync_quietly,
                "interval",
                minutes=settings.sync_interval,
                id=AUTO_SYNC_JOB_ID,
                replace_existing=True,
            )

    def stop_auto_sync(self) -> None:
        if self.scheduler is not None and self.scheduler.get_job(AUTO_SYNC_JOB_ID):
            self.scheduler.remove_job(AUTO_SYNC_JOB_ID)

    # Sync

    def sync(self):
        """Run one pass. Returns None when another pass is already in flight."""
        if not self.get_settings().enabled:
            logger.info("Sync is disabled")
            raise SyncDisabledError()

        if not self._sync_lock.acquire(blocking=False):
            logger.info("Sync already in progress, skipping")
            return None

        try:
            self._update_status(is_syncing=True, error=None)
            try:
                report = self._run_with_reauth()
            except Exception as exc:
                message = str(exc) or "Sync failed"
                self._update_status(
                    is_syncing=False,
                    error=None if isinstance(exc, AuthError) else message,
                )
                logger.error("Sync failed: %s", message)
                raise

            self._update_status(
                is_syncing=False,
                last_sync_time=self.clock(),
                error=None,
                pending_changes=0,
            )
            logger.info("Sync completed successfully")
            return report
        finally:
            self._sync_lock.release()

    def sync_quietly(self):
        try:
            return self.sync()
        except WiserPinError as exc:
            logger.warning("Background sync did not complete: %s", exc)
            return None
        except Exception:
            # Scheduler and daemon thread entry point.
            logger.exception("Background sync crashed")
            return None

    def _run_with_reauth(self):
        try:
            return self.engine.run()
        except AuthError:
            if self.token_provider.session is None:
                raise
            logger.info("Authentication rejected, refreshing token and retrying")
            if not self.token_provider.refresh():
                raise
        return self.engine.run()

    # Messaging

    def bind(self, bus, dispatch=start_in_thread) -> None:
        self.bus = bus

        def trigger_sync(message):
            dispatch(self.sync_quietly)
            return {"status": "started"}

        def enable_sync(message):
            settings = self.update_settings(enabled=True)
            dispatch(self.sync_quietly)
            return {"settings": settings.to_dict()}

        def disable_sync(message):
            self.disable()
            return {"settings": self.get_settings().to_dict()}

        def update_sync_settings(message):
            payload = SyncSettings.from_dict(
                {**self.get_settings().to_dict(), **(message.get("settings") or {})}
            )
            settings = self.update_settings(
                enabled=payload.enabled,
                auto_sync=payload.auto_sync,
                sync_interval=payload.sync_interval,
                wifi_only=payload.wifi_only,
            )
            return {"settings": settings.to_dict()}

        bus.register(MessageType.TRIGGER_SYNC, trigger_sync)
        bus.register(
            MessageType.GET_SYNC_STATUS,
            lambda message: {"status": self.get_status().to_dict()},
        )
        bus.register(
            MessageType.GET_SYNC_SETTINGS,
            lambda message: {"settings": self.get_settings().to_dict()},
        )
        bus.register(MessageType.UPDATE_SYNC_SETTINGS, update_sync_settings)
        bus.register(MessageType.ENABLE_SYNC, enable_sync)
        bus.register(MessageType.DISABLE_SYNC, disable_sync)
