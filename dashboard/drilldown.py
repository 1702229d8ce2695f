"""
Drilldown Controller.

Owns the single drilldown session of a dashboard: which list is open, the
rows loaded so far, sort and cursor state, and the local search term.

Lifecycle:
    closed -> open(key) -> loading <-> ready
                               \\-> error -> retry() -> loading
    any state -> close() / on_tab_change() -> closed

Pages are fetched through a QueryResource whose dependency set is
``(company_id, key, query_string)``; the query string carries the canonical
filters plus cursor, limit and sort. Any change of filters or sort resets
the session to its first page. ``load_more`` appends the next page,
deduplicated by row id.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.observability.logging import get_logger, with_correlation
from dashboard.constants import DRILLDOWN_PAGE_SIZE
from dashboard.drilldown_spec import ColumnSpec, RowAction, get_drilldown_spec
from dashboard.empty_states import smart_empty_description
from dashboard.mock_api import DrilldownRequest, fetch_drilldown
from dashboard.query import build_backend_query, intent_key, query_as_of, to_query_string
from dashboard.query_resource import CancellationToken, QueryResource, QueryState
from dashboard.text import filter_rows, uniq_by_id
from models.dashboard import (
    DashboardBackendQuery,
    DashboardFilters,
    DataMode,
    DrilldownResponse,
    DrilldownRow,
    QuerySource,
    QueryStatus,
    SortDir,
)

logger = get_logger(__name__)

MockSource = Callable[[DrilldownRequest], DrilldownResponse]

EMPTY_DRILLDOWN_MESSAGE = "No items for this list"


@dataclass
class DrilldownSession:
    """Mutable state of the open drilldown (or a closed placeholder)."""
    open: bool = False
    key: Optional[str] = None
    title: str = ""
    params: Dict[str, Any] = field(default_factory=dict)
    rows: List[DrilldownRow] = field(default_factory=list)
    status: QueryStatus = QueryStatus.IDLE
    error_message: Optional[str] = None
    source: Optional[QuerySource] = None
    sort_by: Optional[str] = None
    sort_dir: Optional[SortDir] = None
    cursor: Optional[str] = None
    next_cursor: Optional[str] = None
    has_more: bool = False
    search: str = ""

    @property
    def active(self) -> bool:
        return self.open and bool(self.key)


@dataclass(frozen=True)
class DrilldownView:
    """Read-only projection of the session for presentation layers."""
    open: bool
    key: Optional[str]
    title: str
    status: QueryStatus
    error_message: Optional[str]
    source: Optional[QuerySource]
    rows: Tuple[DrilldownRow, ...]
    loaded_count: int
    has_more: bool
    can_load_more: bool
    sort_by: Optional[str]
    sort_dir: Optional[SortDir]
    search: str
    columns: Tuple[ColumnSpec, ...]
    row_action: Optional[RowAction]
    is_empty: bool
    empty_description: Optional[str]


class DrilldownController:
    """Sole writer of the drilldown session.

    Usage:
        controller = DrilldownController("CMP-001", mode=DataMode.MOCK, mock_delay_ms=0)
        controller.open("topClients", "Top clients")
        await controller.wait()
        controller.load_more()
        await controller.wait()
    """

    def __init__(
        self,
        company_id: str,
        mode: DataMode = DataMode.MOCK,
        client=None,
        filters: Optional[DashboardFilters] = None,
        backend_query: Optional[DashboardBackendQuery] = None,
        page_size: int = DRILLDOWN_PAGE_SIZE,
        mock_delay_ms: int = 220,
        fallback_to_mock: bool = True,
        mock_source: Optional[MockSource] = None,
    ):
        """
        Args:
            company_id: Company the lists are scoped to
            mode: Data source selection
            client: DashboardApiClient used in backend mode
            filters: Initial filter state
            backend_query: Canonical query already resolved for ``filters``
            page_size: Rows requested per page
            mock_delay_ms: Artificial latency of the mock path
            fallback_to_mock: Substitute mock pages when the backend fails
            mock_source: Page generator used for mock data
        """
        self.company_id = company_id
        self.mode = DataMode(mode)
        self.client = client
        self.page_size = page_size
        self.mock_source: MockSource = mock_source or fetch_drilldown

        self._session = DrilldownSession()
        self._filters = filters or DashboardFilters()
        self._backend_query = backend_query or build_backend_query(self._filters)
        self._as_of = query_as_of(self._backend_query)

        self._resource: QueryResource[DrilldownResponse] = QueryResource(
            "drilldown",
            mode=self.mode,
            mock_delay_ms=mock_delay_ms,
            fallback_to_mock=fallback_to_mock,
        )
        self._resource.subscribe(self._on_state)

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def session(self) -> DrilldownSession:
        """Current session. Treat as read-only."""
        return self._session

    @property
    def filters(self) -> DashboardFilters:
        return self._filters

    @property
    def backend_query(self) -> DashboardBackendQuery:
        return self._backend_query

    @property
    def can_load_more(self) -> bool:
        s = self._session
        return s.active and s.has_more and bool(s.next_cursor) and s.status != QueryStatus.LOADING

    def query_string(self) -> str:
        """Serialized request for the current page."""
        s = self._session
        extra = dict(s.params)
        extra.update({
            "cursor": s.cursor,
            "limit": self.page_size,
            "sortBy": s.sort_by,
            "sortDir": s.sort_dir,
        })
        return to_query_string(self._backend_query, extra)

    def visible_rows(self) -> List[DrilldownRow]:
        """Loaded rows narrowed by the local search term (no network effect)."""
        return filter_rows(self._session.rows, self._session.search)

    def view(self) -> DrilldownView:
        s = self._session
        spec = get_drilldown_spec(s.key)
        rows = tuple(self.visible_rows())
        is_empty = s.active and s.status == QueryStatus.READY and not rows

        empty_description = None
        if is_empty:
            base = "No rows match the search" if s.rows else EMPTY_DRILLDOWN_MESSAGE
            empty_description = smart_empty_description(self._filters, base)

        return DrilldownView(
            open=s.open,
            key=s.key,
            title=s.title,
            status=s.status,
            error_message=s.error_message,
            source=s.source,
            rows=rows,
            loaded_count=len(s.rows),
            has_more=s.has_more,
            can_load_more=self.can_load_more,
            sort_by=s.sort_by,
            sort_dir=s.sort_dir,
            search=s.search,
            columns=spec.columns,
            row_action=spec.row_action,
            is_empty=is_empty,
            empty_description=empty_description,
        )

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def open(self, key: str, title: str, params: Optional[Dict[str, Any]] = None) -> None:
        """Open a drilldown list, replacing any open one, at its default sort."""
        spec = get_drilldown_spec(key)
        default_sort = spec.default_sort

        self._session = DrilldownSession(
            open=True,
            key=key,
            title=title,
            params=dict(params or {}),
            status=QueryStatus.LOADING,
            sort_by=default_sort.by if default_sort else None,
            sort_dir=default_sort.dir if default_sort else None,
        )
        with with_correlation(company_id=self.company_id, drilldown_key=key):
            logger.info(f"Opened drilldown {key}", extra_fields={"title": title})
        self._restart()

    def close(self) -> None:
        if self._session.open:
            with with_correlation(company_id=self.company_id, drilldown_key=self._session.key):
                logger.info(f"Closed drilldown {self._session.key}")
        self._session = DrilldownSession()
        self._resource.update(False)

    def on_tab_change(self) -> None:
        """Switching the top-level tab always closes the drilldown."""
        self.close()

    def set_filters(self, filters: DashboardFilters,
                    backend_query: Optional[DashboardBackendQuery] = None) -> bool:
        """Apply a new filter state.

        The session resets to its first page only when the canonical intent
        changes; whitespace-only edits are ignored.

        Args:
            filters: New filter state
            backend_query: Canonical query already resolved by the caller

        Returns:
            True if the open session was reset
        """
        if intent_key(filters) == intent_key(self._filters):
            self._filters = filters
            return False

        self._filters = filters
        self._backend_query = backend_query or build_backend_query(filters)
        self._as_of = query_as_of(self._backend_query)

        if not self._session.active:
            return False
        self._reset("filters changed")
        return True

    def toggle_sort(self, column_id: str) -> bool:
        """Sort by a column: ascending first, flipping on repeated clicks.

        Returns:
            True if the sort changed (and the session reset)
        """
        s = self._session
        if not s.active:
            return False
        column = get_drilldown_spec(s.key).column(column_id)
        if column is None or not column.sortable:
            return False

        next_by = column.effective_sort_key
        if next_by == s.sort_by:
            next_dir = SortDir.DESC if s.sort_dir == SortDir.ASC else SortDir.ASC
        else:
            next_dir = SortDir.ASC

        s.sort_by = next_by
        s.sort_dir = next_dir
        self._reset(f"sort {next_by} {next_dir.value}")
        return True

    def set_search(self, search: str) -> None:
        """Local search over loaded rows. Never refetches."""
        self._session.search = search or ""

    def load_more(self) -> bool:
        """Request the next page; appended on arrival.

        Only actionable while more rows exist and no page is loading. With a
        local search active this still fetches the next unfiltered page.
        """
        if not self.can_load_more:
            return False
        s = self._session
        s.cursor = s.next_cursor
        s.status = QueryStatus.LOADING
        s.error_message = None
        self._restart()
        return True

    def reload(self) -> None:
        """Back to the first page and fetch again."""
        if self._session.active:
            self._reset("reload")

    def retry(self) -> bool:
        """Repeat the last request (same cursor) after an error."""
        s = self._session
        if not s.active or s.status != QueryStatus.ERROR:
            return False
        s.status = QueryStatus.LOADING
        s.error_message = None
        self._restart()
        return True

    async def wait(self) -> DrilldownSession:
        """Wait until the current page request settles."""
        await self._resource.wait()
        return self._session

    def dispose(self) -> None:
        self._session = DrilldownSession()
        self._resource.close()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _reset(self, reason: str) -> None:
        s = self._session
        s.rows = []
        s.cursor = None
        s.next_cursor = None
        s.has_more = False
        s.status = QueryStatus.LOADING
        s.error_message = None
        logger.debug(f"Drilldown {s.key} reset: {reason}")
        self._restart()

    def _restart(self) -> None:
        """Start a fetch for the current session state."""
        s = self._session
        key = s.key
        query_string = self.query_string()
        request = DrilldownRequest(
            company_id=self.company_id,
            key=key,
            filters=self._filters,
            cursor=s.cursor,
            limit=self.page_size,
            sort_by=s.sort_by,
            sort_dir=s.sort_dir,
            as_of=self._as_of,
        )

        def compute_mock() -> DrilldownResponse:
            return self.mock_source(request)

        fetcher = None
        if self.client is not None:
            client = self.client

            async def fetcher(token: CancellationToken) -> DrilldownResponse:
                return await client.fetch_drilldown(key, query_string, token)

        started = self._resource.update(
            True,
            deps=(self.company_id, key, query_string),
            compute_mock=compute_mock,
            fetcher=fetcher,
        )
        if not started:
            self._resource.refetch()

    def _on_state(self, state: QueryState) -> None:
        s = self._session
        if not s.active:
            return

        if state.status == QueryStatus.READY:
            self._merge(state.data, state.source)
        elif state.status == QueryStatus.ERROR:
            # A failed page keeps the rows loaded before it
            s.status = QueryStatus.ERROR
            s.error_message = state.error_message
            s.source = state.source

    def _merge(self, response: Optional[DrilldownResponse], source: QuerySource) -> None:
        s = self._session
        incoming = list(response.rows) if response else []
        paging = response.paging if response else None

        next_cursor = paging.effective_next_cursor if paging else None
        has_more = bool(paging and paging.has_more and next_cursor)

        if s.cursor and s.rows:
            s.rows = uniq_by_id(s.rows + incoming)
        else:
            s.rows = uniq_by_id(incoming)

        s.has_more = has_more
        s.next_cursor = next_cursor if has_more else None
        s.status = QueryStatus.READY
        s.error_message = None
        s.source = source
