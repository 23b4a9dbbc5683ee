from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from wiserpin.client.local_store import LocalStore
from wiserpin.client.messaging import MessageBus
from wiserpin.client.orchestrator import SyncOrchestrator, start_in_thread
from wiserpin.client.reconcile import ReconciliationEngine
from wiserpin.client.remote import RemoteClient
from wiserpin.client.tokens import CredentialsSession, TokenProvider
from wiserpin.config import ClientConfig


logger = logging.getLogger(__name__)


class SyncContext:
    """Every client component, built once per process and wired explicitly."""

    def __init__(
        self,
        config=ClientConfig,
        store=None,
        session=None,
        transport=None,
        scheduler=None,
        is_online=None,
        dispatch=start_in_thread,
    ):
        self.config = config
        self.store = store or LocalStore(config.DB_PATH)
        if session is None and config.USERNAME and config.PASSWORD:
            session = CredentialsSession(
                config.API_URL,
                config.USERNAME,
                config.PASSWORD,
                timeout=config.REQUEST_TIMEOUT,
                transport=transport,
            )
        self.tokens = TokenProvider(self.store, session)
        self.remote = RemoteClient(
            config.API_URL,
            self.tokens,
            timeout=config.REQUEST_TIMEOUT,
            transport=transport,
        )
        self.engine = ReconciliationEngine(
            self.store, self.remote, self.tokens, is_online=is_online
        )
        if scheduler is None and config.SCHEDULER_ENABLED:
            scheduler = BackgroundScheduler()
        self.scheduler = scheduler
        self.bus = MessageBus()
        self.orchestrator = SyncOrchestrator(
            self.store,
            self.engine,
            self.tokens,
            scheduler=self.scheduler,
        )
        self.orchestrator.bind(self.bus, dispatch=dispatch)

    def start(self) -> None:
        """Arm the timers and run the start-up sync when it is enabled."""
        if self.scheduler is not None:
            self.tokens.start_refresh_timer(
                self.scheduler, interval_minutes=self.config.TOKEN_REFRESH_MINUTES
            )
            if not self.scheduler.running:
                self.scheduler.start()
        if self.tokens.session is not None and not self.tokens.get_token():
            self.tokens.refresh()
        self.orchestrator.initialize()

    def close(self) -> None:
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        if self.tokens.session is not None and hasattr(self.tokens.session, "close"):
            self.tokens.session.close()
        self.remote.close()
        self.store.close()
