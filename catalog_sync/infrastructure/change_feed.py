"""
Change feed over PostgreSQL LISTEN/NOTIFY.

Each table in `db/init.sql` has a trigger that runs `pg_notify(<table>, <op>)`
after every INSERT, UPDATE or DELETE. A subscription holds one dedicated
asyncpg connection that LISTENs on the channel of every watched table and
calls the subscriber's handler once per burst of notifications.

Connection loss is never reported to the subscriber: the listen loop
reconnects with exponential backoff (tenacity) and the subscriber's data is
simply stale until the next notification arrives.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Collection, Optional

import asyncpg
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, wait_exponential

from catalog_sync.config import get_settings
from catalog_sync.infrastructure.db_factory import (
    LISTENER_CONNECT_ERRORS,
    TRANSIENT_LISTENER_ERRORS,
    connect_listener,
)
from catalog_sync.utils.logging import get_logger

log = get_logger(__name__)


class Subscription:
    """
    Handle for one live subscription. Created by PgChangeFeed.subscribe.
    """

    def __init__(
        self,
        topics: frozenset,
        on_change: Callable[[], None],
        debounce_seconds: float,
    ) -> None:
        self.topics = topics
        self.notifications = 0
        self.deliveries = 0
        self.reconnects = 0
        self._on_change = on_change
        self._debounce_seconds = debounce_seconds
        self._closed = False
        self._ready = asyncio.Event()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._conn: Optional[asyncpg.Connection] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _notify(self, connection: object, pid: int, channel: str, payload: str) -> None:
        """asyncpg listener callback; coalesces a burst into one delivery."""
        if self._closed:
            return
        self.notifications += 1
        log.debug("Change notification", extra={"channel": channel, "operation": payload})
        if self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self._debounce_seconds, self._flush)

    def _flush(self) -> None:
        self._timer = None
        if self._closed:
            return
        self.deliveries += 1
        self._on_change()

    async def close(self) -> None:
        """Tear down exactly once; afterwards the handler is never called."""
        if self._closed:
            return
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        conn, self._conn = self._conn, None
        if conn is None or conn.is_closed():
            return
        try:
            for topic in sorted(self.topics):
                await conn.remove_listener(topic, self._notify)
            await conn.close()
        except TRANSIENT_LISTENER_ERRORS as exc:
            log.debug("Listener connection already gone", extra={"error": str(exc)})


class PgChangeFeed:
    """
    ChangeFeed implementation backed by asyncpg LISTEN.

    Parameters
    ----------
    dsn_override : str | None
        Connection string; defaults to the one built from settings.
    debounce_ms : int | None
        Window in which notifications are coalesced into one handler call.
    keepalive_seconds : float | None
        Idle interval after which the listen connection is probed.
    reconnect_initial_wait : float
        First backoff delay after a lost connection; doubles up to the max.
    reconnect_max_wait : float | None
        Upper bound for the backoff delay.
    ready_timeout : float | None
        How long `subscribe` waits for the first LISTEN to be established.
    """

    def __init__(
        self,
        dsn_override: Optional[str] = None,
        debounce_ms: Optional[int] = None,
        keepalive_seconds: Optional[float] = None,
        reconnect_initial_wait: float = 0.5,
        reconnect_max_wait: Optional[float] = None,
        ready_timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self._dsn_override = dsn_override
        self.debounce_seconds = (
            debounce_ms if debounce_ms is not None else settings.feed_debounce_ms
        ) / 1000
        self.keepalive_seconds = keepalive_seconds or settings.feed_keepalive_seconds
        self.reconnect_initial_wait = reconnect_initial_wait
        self.reconnect_max_wait = reconnect_max_wait or settings.feed_reconnect_max_wait_seconds
        self.ready_timeout = (
            ready_timeout if ready_timeout is not None else settings.feed_ready_timeout_seconds
        )

    async def _connect(self) -> asyncpg.Connection:
        return await connect_listener(self._dsn_override)

    async def subscribe(
        self, topics: Collection[str], on_change: Callable[[], None]
    ) -> Subscription:
        watched = frozenset(topics)
        if not watched:
            raise ValueError("A subscription needs at least one topic")

        subscription = Subscription(watched, on_change, self.debounce_seconds)
        subscription._task = asyncio.create_task(
            self._listen(subscription), name=f"change-feed:{','.join(sorted(watched))}"
        )
        try:
            await asyncio.wait_for(subscription._ready.wait(), timeout=self.ready_timeout)
        except asyncio.TimeoutError:
            log.warning(
                "Change feed not connected yet; continuing in the background",
                extra={"topics": sorted(watched)},
            )
        return subscription

    async def unsubscribe(self, handle: Subscription) -> None:
        await handle.close()
        log.info("Change feed unsubscribed", extra={"topics": sorted(handle.topics)})

    async def _connect_with_retry(self, subscription: Subscription) -> asyncpg.Connection:
        def _log_retry(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            log.warning(
                "Change feed connection failed; retrying",
                extra={
                    "topics": sorted(subscription.topics),
                    "attempt": state.attempt_number,
                    "error": str(exc),
                },
            )

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(LISTENER_CONNECT_ERRORS),
            wait=wait_exponential(
                multiplier=self.reconnect_initial_wait, max=self.reconnect_max_wait
            ),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                return await self._connect()
        raise AssertionError("unreachable")  # pragma: no cover

    async def _listen(self, subscription: Subscription) -> None:
        """Supervise the subscription until it is closed; never exits on errors."""
        topics = sorted(subscription.topics)
        while not subscription.closed:
            try:
                await self._listen_once(subscription)
            except Exception:
                log.exception("Change feed listener failed; restarting", extra={"topics": topics})
                await asyncio.sleep(self.reconnect_max_wait)

            if not subscription.closed:
                subscription.reconnects += 1
                log.warning("Change feed connection lost; reconnecting", extra={"topics": topics})

    async def _listen_once(self, subscription: Subscription) -> None:
        """One connection lifetime: connect, LISTEN, wait until the connection is lost."""
        conn = await self._connect_with_retry(subscription)
        subscription._conn = conn
        lost = asyncio.Event()
        conn.add_termination_listener(lambda _conn: lost.set())
        try:
            for topic in sorted(subscription.topics):
                await conn.add_listener(topic, subscription._notify)
            subscription._ready.set()
            log.info("Change feed listening", extra={"topics": sorted(subscription.topics)})
            await self._wait_until_lost(conn, lost)
        except TRANSIENT_LISTENER_ERRORS as exc:
            log.warning("LISTEN failed; reconnecting", extra={"error": str(exc)})
        finally:
            # A closed subscription tears its connection down in close().
            if not subscription.closed:
                subscription._conn = None
                if not conn.is_closed():
                    conn.terminate()

    async def _wait_until_lost(self, conn: asyncpg.Connection, lost: asyncio.Event) -> None:
        while not lost.is_set():
            try:
                await asyncio.wait_for(lost.wait(), timeout=self.keepalive_seconds)
            except asyncio.TimeoutError:
                try:
                    # A half-open socket never answers; bound the probe too.
                    await asyncio.wait_for(
                        conn.execute("SELECT 1"), timeout=self.keepalive_seconds
                    )
                except TRANSIENT_LISTENER_ERRORS:
                    return


__all__ = ["PgChangeFeed", "Subscription"]
