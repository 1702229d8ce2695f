"""
Query Resource - one query at a time, bound to a dependency set.

A QueryResource owns the state of one logical query (a widget payload or a
drilldown page). Every dependency change (or explicit refetch) starts a new
generation-tagged asyncio task; only the task holding the latest generation
may commit state, so stale completions are dropped no matter when they land.

Data sources:
- mock:    artificial delay, then the synchronous ``compute_mock``
- backend: ``await fetcher(token)``; on failure, optionally substitute
           ``compute_mock()`` and label the result ``mock-fallback``

Producer exceptions never escape: they become ``status=error`` with a single
human-readable message. Task cancellation is propagated, never absorbed.

Usage:
    resource = QueryResource("overview", mode=DataMode.MOCK, mock_delay_ms=0)
    resource.update(True, deps=(company_id, qs), compute_mock=lambda: ...)
    await resource.wait()
    resource.state.status  # QueryStatus.READY
"""

import asyncio
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

from core.observability.logging import (
    get_logger,
    log_query_committed,
    log_query_error,
    log_query_started,
    with_correlation,
)
from core.observability.metrics import (
    record_query_completed,
    record_query_discarded,
    record_query_failed,
    record_query_fallback,
    record_query_started,
)
from dashboard.errors import (
    FetcherNotConfiguredError,
    MockComputationError,
    error_kind,
    error_to_message,
)
from models.dashboard import DataMode, QuerySource, QueryStatus

logger = get_logger(__name__)

T = TypeVar("T")


# =============================================================================
# STATE
# =============================================================================

@dataclass
class CancellationToken:
    """Handed to fetchers; set once the generation it belongs to is superseded."""
    generation: int
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(frozen=True)
class QueryState(Generic[T]):
    """Snapshot of a query resource.

    ``ready`` carries data and no error; ``error`` carries a message and no data.
    """
    status: QueryStatus = QueryStatus.IDLE
    data: Optional[T] = None
    error_message: Optional[str] = None
    source: QuerySource = QuerySource.MOCK
    generation: int = 0

    @property
    def is_loading(self) -> bool:
        return self.status == QueryStatus.LOADING


ComputeMock = Callable[[], T]
Fetcher = Callable[[CancellationToken], Awaitable[T]]
Listener = Callable[[QueryState], None]


# =============================================================================
# RESOURCE
# =============================================================================

class QueryResource(Generic[T]):
    """Generation-tagged async binder for a single query."""

    def __init__(
        self,
        name: str,
        mode: DataMode = DataMode.MOCK,
        compute_mock: Optional[ComputeMock] = None,
        fetcher: Optional[Fetcher] = None,
        mock_delay_ms: int = 220,
        fallback_to_mock: bool = True,
    ):
        """
        Initialize the resource in the idle state.

        Args:
            name: Widget or query name used in logs and metrics
            mode: Data source selection
            compute_mock: Synchronous mock producer
            fetcher: Async backend producer taking a cancellation token
            mock_delay_ms: Artificial latency of the mock path
            fallback_to_mock: Substitute mock data when the backend fails
        """
        self.name = name
        self.mode = DataMode(mode)
        self.mock_delay_ms = max(0, mock_delay_ms)
        self.fallback_to_mock = fallback_to_mock

        self._compute_mock = compute_mock
        self._fetcher = fetcher
        self._deps: Optional[tuple] = None
        self._generation = 0
        self._token: Optional[CancellationToken] = None
        self._task: Optional[asyncio.Task] = None
        self._state: QueryState = QueryState()
        self._listeners: List[Listener] = []
        self._closed = False

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def deps(self) -> Optional[tuple]:
        return self._deps

    @property
    def enabled(self) -> bool:
        return self._deps is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` with every new state. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------------------
    # Write side
    # -------------------------------------------------------------------------

    def update(
        self,
        enabled: bool,
        deps: tuple = (),
        compute_mock: Optional[ComputeMock] = None,
        fetcher: Optional[Fetcher] = None,
    ) -> bool:
        """
        Bind the resource to a dependency set.

        Producers passed here replace the previous ones and are used by the
        next operation. A new operation starts only when the resource becomes
        enabled or ``deps`` differs from the active set.

        Returns:
            True if a new operation was started
        """
        if compute_mock is not None:
            self._compute_mock = compute_mock
        if fetcher is not None:
            self._fetcher = fetcher

        if self._closed:
            return False

        if not enabled:
            if self._deps is not None or self._state.status != QueryStatus.IDLE:
                self._cancel_inflight()
                self._deps = None
                self._generation += 1
                self._set_state(QueryState(generation=self._generation))
            return False

        deps = tuple(deps)
        if deps == self._deps:
            return False

        self._deps = deps
        self._start(keep_data=False)
        return True

    def refetch(self) -> bool:
        """Start a new operation for the same dependency set.

        The previous data stays visible while loading.
        """
        if self._closed or self._deps is None:
            return False
        self._start(keep_data=True)
        return True

    async def wait(self) -> QueryState:
        """Wait until the latest operation has settled."""
        while self._task is not None and not self._task.done():
            await asyncio.wait([self._task])
        return self._state

    def close(self) -> None:
        """Cancel in-flight work and stop accepting updates."""
        self._cancel_inflight()
        self._closed = True
        self._deps = None
        self._listeners.clear()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _cancel_inflight(self) -> None:
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def _start(self, keep_data: bool) -> None:
        self._cancel_inflight()
        self._generation += 1
        token = CancellationToken(self._generation)
        self._token = token

        previous = self._state
        if keep_data:
            loading = replace(previous, status=QueryStatus.LOADING, error_message=None, generation=token.generation)
        else:
            loading = QueryState(status=QueryStatus.LOADING, source=self._default_source(), generation=token.generation)
        self._set_state(loading)

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(token, self._compute_mock, self._fetcher))

    def _default_source(self) -> QuerySource:
        return QuerySource.BACKEND if self.mode == DataMode.BACKEND else QuerySource.MOCK

    def _is_current(self, token: CancellationToken) -> bool:
        return not token.cancelled and token.generation == self._generation

    def _set_state(self, state: QueryState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception(f"State listener of {self.name} failed ({state.status.value})")

    def _commit(self, token: CancellationToken, state: QueryState) -> bool:
        if not self._is_current(token):
            record_query_discarded(self.name)
            logger.debug(
                f"Discarded stale result for {self.name}",
                extra_fields={"stale_generation": token.generation, "current_generation": self._generation},
            )
            return False
        self._set_state(state)
        return True

    def _run_mock(self, compute_mock: Optional[ComputeMock]) -> T:
        if compute_mock is None:
            raise MockComputationError(f"No mock data available for {self.name}")
        try:
            return compute_mock()
        except Exception as exc:
            raise MockComputationError(error_to_message(exc)) from exc

    async def _run(self, token: CancellationToken, compute_mock: Optional[ComputeMock],
                   fetcher: Optional[Fetcher]) -> None:
        with with_correlation(widget=self.name, generation=token.generation, data_mode=self.mode.value):
            started = time.perf_counter()
            record_query_started(self.name)
            log_query_started(self.name)

            if self.mode == DataMode.MOCK:
                await self._run_mock_path(token, compute_mock, started)
            else:
                await self._run_backend_path(token, compute_mock, fetcher, started)

    async def _run_mock_path(self, token: CancellationToken, compute_mock: Optional[ComputeMock],
                             started: float) -> None:
        if self.mock_delay_ms:
            await asyncio.sleep(self.mock_delay_ms / 1000)
        if not self._is_current(token):
            record_query_discarded(self.name)
            return

        try:
            data = self._run_mock(compute_mock)
        except MockComputationError as exc:
            self._fail(token, exc, QuerySource.MOCK, started)
            return

        self._succeed(token, data, QuerySource.MOCK, started)

    async def _run_backend_path(self, token: CancellationToken, compute_mock: Optional[ComputeMock],
                                fetcher: Optional[Fetcher], started: float) -> None:
        try:
            if fetcher is None:
                raise FetcherNotConfiguredError(f"No backend fetcher configured for {self.name}")
            data = await fetcher(token)
        except Exception as exc:
            if not self._is_current(token):
                record_query_discarded(self.name)
                return

            if not self.fallback_to_mock or compute_mock is None:
                self._fail(token, exc, QuerySource.BACKEND, started)
                return

            try:
                fallback = self._run_mock(compute_mock)
            except MockComputationError as mock_exc:
                logger.warning(
                    f"Mock fallback failed for {self.name}: {error_to_message(mock_exc)}",
                    extra_fields={"kind": error_kind(mock_exc)},
                )
                # The backend failure is what the consumer needs to see
                self._fail(token, exc, QuerySource.BACKEND, started)
                return

            record_query_fallback(self.name)
            logger.warning(
                f"Backend failed for {self.name}, using mock data: {error_to_message(exc)}",
                extra_fields={"kind": error_kind(exc)},
            )
            self._succeed(token, fallback, QuerySource.MOCK_FALLBACK, started)
            return

        self._succeed(token, data, QuerySource.BACKEND, started)

    def _succeed(self, token: CancellationToken, data: Any, source: QuerySource, started: float) -> None:
        state = QueryState(status=QueryStatus.READY, data=data, source=source, generation=token.generation)
        if self._commit(token, state):
            duration_ms = (time.perf_counter() - started) * 1000
            record_query_completed(self.name, source.value, duration_ms)
            log_query_committed(self.name, source.value, duration_ms)

    def _fail(self, token: CancellationToken, exc: Exception, source: QuerySource, started: float) -> None:
        message = error_to_message(exc)
        state = QueryState(status=QueryStatus.ERROR, error_message=message, source=source,
                           generation=token.generation)
        if self._commit(token, state):
            duration_ms = (time.perf_counter() - started) * 1000
            record_query_failed(self.name, message, duration_ms)
            log_query_error(self.name, message, kind=error_kind(exc))
