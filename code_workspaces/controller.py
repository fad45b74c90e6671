"""
Query Controller - Incremental search over aggregated workspaces.

State machine:

    IDLE ──first get_items()/refresh()──▶ LOADING ──aggregation done──▶ READY | EMPTY
    any  ──update_search_text()────────▶ FILTERING ──debounce elapsed──▶ READY | EMPTY
    READY ──load_more()──▶ READY (one more page served)
    any  ──refresh()──▶ LOADING (pending filter and load are superseded)
    any  ──aclose()───▶ DISPOSED

Every search-text change bumps ``cancellation_epoch``; a debounced filter
only commits if the epoch it captured is still current. Aggregation passes
carry their own generation number, so typing never discards a load and a
newer refresh always wins over an older one.

All state lives behind one lock that is never held across an await. The
lock is not re-entrant, so settings are read before taking it and settings
callbacks are re-scheduled onto the event loop instead of running inline.

Usage:
    controller = QueryController(settings)
    controller.add_callback(redraw)          # called whenever items change

    rows = controller.get_items()            # first call starts loading
    controller.update_search_text("proj")    # debounced re-filter
    controller.load_more()                   # next page

    await controller.aclose()
"""

import asyncio
import dataclasses
import logging
import threading
from collections.abc import Callable

from .aggregator import Aggregator
from .models import ControllerState, EditorInstallation, QueryState, Workspace
from .protocols import RowFactory, SettingsProvider
from .rows import ListRow, ReloadCommand, WorkspaceRowFactory
from .search_index import SearchIndex
from .settings_manager import PREFERRED_EDITION

logger = logging.getLogger(__name__)

ItemsChangedCallback = Callable[[], None]


class QueryController:
    """
    Owns the search text, pagination, debounce timer and refresh task.

    Callers only ever see a list of rows (possibly the no-results sentinel),
    the loading flag and the has-more flag; nothing here raises to them.
    """

    def __init__(
        self,
        settings: SettingsProvider,
        aggregator: Aggregator | None = None,
        row_factory: RowFactory | None = None,
        index: SearchIndex | None = None,
    ):
        """
        Initialize the controller and subscribe to settings changes.

        Args:
            settings: Configuration provider
            aggregator: Discovery/extraction pipeline (default: Aggregator())
            row_factory: Builds display rows (default: WorkspaceRowFactory with a
                ReloadCommand bound to this controller)
            index: Search index to fill (default: empty SearchIndex)
        """
        self._settings = settings
        self._aggregator = aggregator if aggregator is not None else Aggregator()
        if row_factory is None:
            row_factory = WorkspaceRowFactory(settings, extra_commands=[ReloadCommand(self)])
        self._row_factory = row_factory
        self._index = index if index is not None else SearchIndex()

        self._lock = threading.Lock()
        self._query = QueryState(page_size=settings.page_size)
        self._status = ControllerState.IDLE
        self._filtered: list[Workspace] = []
        self._load_started = False
        self._load_generation = 0
        self._load_task: asyncio.Task | None = None
        self._debounce_task: asyncio.Task | None = None
        self._callbacks: list[ItemsChangedCallback] = []
        self._loop: asyncio.AbstractEventLoop | None = None

        self._settings.add_callback(self._on_settings_changed)

    # ==================== Read-only views ====================

    @property
    def state(self) -> ControllerState:
        with self._lock:
            return self._status

    @property
    def query_state(self) -> QueryState:
        """Copy of the current query state."""
        with self._lock:
            return dataclasses.replace(self._query)

    @property
    def search_text(self) -> str:
        with self._lock:
            return self._query.search_text

    @property
    def is_loading(self) -> bool:
        with self._lock:
            return self._query.is_loading

    @property
    def has_more_items(self) -> bool:
        with self._lock:
            return self._query.has_more_items

    @property
    def installations(self) -> tuple[EditorInstallation, ...]:
        return self._aggregator.installations

    def served_workspaces(self) -> list[Workspace]:
        """Snapshot of the workspaces on the pages served so far."""
        with self._lock:
            return self._filtered[: self._served_count()]

    def get_items(self) -> list[ListRow]:
        """
        Rows for the pages served so far.

        The first call starts loading. While nothing matches and no load is
        in flight, a single no-results row is returned.
        """
        with self._lock:
            if self._status == ControllerState.DISPOSED:
                return []
            start_load = not self._load_started

        if start_load:
            self._start_load()

        with self._lock:
            snapshot = self._filtered[: self._served_count()]
            loading = self._query.is_loading

        if not snapshot and not loading:
            return [self._row_factory.no_results_row()]
        return [self._row_factory.create_row(workspace) for workspace in snapshot]

    # ==================== Items-changed callbacks ====================

    def add_callback(self, callback: ItemsChangedCallback) -> None:
        """Register a callback invoked whenever the served items or flags change."""
        with self._lock:
            self._callbacks.append(callback)

    def remove_callback(self, callback: ItemsChangedCallback) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def _notify_items_changed(self) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Items-changed callback failed: {e}")

    # ==================== Search text and paging ====================

    def update_search_text(self, text: str) -> None:
        """
        Change the query; the filter runs once the text has been quiet for
        the configured search delay.
        """
        delay = self._settings.search_delay / 1000
        loop = self._capture_loop()

        with self._lock:
            if self._status == ControllerState.DISPOSED:
                return
            if text == self._query.search_text:
                return
            self._query.search_text = text
            self._query.cancellation_epoch += 1
            epoch = self._query.cancellation_epoch
            self._status = ControllerState.FILTERING
            previous = self._debounce_task
            self._debounce_task = None

            if loop is not None:
                self._debounce_task = loop.create_task(self._debounced_filter(epoch, delay))

        if previous is not None:
            previous.cancel()

        if loop is None:
            logger.debug("No running event loop, filtering immediately")
            self._apply_filter()

    def load_more(self) -> bool:
        """
        Serve one more page of the current result set.

        Returns:
            True if a page was added
        """
        with self._lock:
            if self._status not in (ControllerState.READY, ControllerState.LOADING):
                return False
            if not self._query.has_more_items:
                return False
            self._query.current_page_count += 1
            self._query.has_more_items = self._served_count() < len(self._filtered)
            served = self._served_count()

        logger.debug(f"Serving {served} of {len(self._filtered)} workspace(s)")
        self._notify_items_changed()
        return True

    def _served_count(self) -> int:
        """Number of filtered items on served pages (lock held)."""
        return min(self._query.current_page_count * self._query.page_size, len(self._filtered))

    async def _debounced_filter(self, epoch: int, delay: float) -> None:
        await asyncio.sleep(delay)
        self._apply_filter(epoch)

    def _apply_filter(self, epoch: int | None = None) -> None:
        """Filter the index from page one; skipped if ``epoch`` is stale."""
        mode = self._settings.search_mode
        page_size = self._settings.page_size

        with self._lock:
            if self._status == ControllerState.DISPOSED:
                return
            if epoch is not None and epoch != self._query.cancellation_epoch:
                return
            self._filtered = self._index.filter(self._query.search_text, mode)
            self._query.page_size = page_size
            self._query.current_page_count = 1
            self._query.has_more_items = self._served_count() < len(self._filtered)
            self._status = self._settled_status()
            count = len(self._filtered)
            text = self._query.search_text

        logger.debug(f"Filter {text!r} ({mode.value}) matched {count} workspace(s)")
        self._notify_items_changed()

    def _settled_status(self) -> ControllerState:
        """Status once no filter is pending (lock held)."""
        if self._query.is_loading:
            return ControllerState.LOADING
        return ControllerState.READY if self._filtered else ControllerState.EMPTY

    # ==================== Loading ====================

    async def refresh(self, wait: bool = False) -> None:
        """
        Re-run discovery and aggregation, superseding any pending work.

        Args:
            wait: Return only once this refresh has finished or been superseded
        """
        task = self._start_load()
        if wait and task is not None:
            await asyncio.wait({task})

    def _start_load(self) -> asyncio.Task | None:
        """Cancel pending filter/load work and start a new aggregation pass."""
        loop = self._capture_loop()
        if loop is None:
            logger.debug("No running event loop, cannot load workspaces")
            return None

        with self._lock:
            if self._status == ControllerState.DISPOSED:
                return None
            self._load_started = True
            self._load_generation += 1
            generation = self._load_generation
            self._query.cancellation_epoch += 1
            self._query.is_loading = True
            self._status = ControllerState.LOADING
            stale = [task for task in (self._load_task, self._debounce_task) if task is not None]
            self._debounce_task = None
            task = loop.create_task(self._load(generation))
            self._load_task = task

        for stale_task in stale:
            stale_task.cancel()

        self._notify_items_changed()
        return task

    async def _load(self, generation: int) -> None:
        edition = self._settings.preferred_edition
        try:
            workspaces = await self._aggregator.refresh(edition)
        except asyncio.CancelledError:
            self._finish_load(generation, None)
            raise
        except Exception as e:
            logger.error(f"Workspace aggregation failed: {e}", exc_info=True)
            self._finish_load(generation, None)
            return

        self._finish_load(generation, workspaces)

    def _finish_load(self, generation: int, workspaces: list[Workspace] | None) -> None:
        """Commit a load result, or just clear the loading flag if it failed.

        Superseded generations change nothing.
        """
        with self._lock:
            if generation != self._load_generation:
                return
            self._load_task = None
            self._query.is_loading = False
            if self._status == ControllerState.DISPOSED:
                return
            if workspaces is None:
                self._status = self._settled_status()
            else:
                self._index.replace(workspaces)

        if workspaces is None:
            self._notify_items_changed()
            return

        logger.info(f"Loaded {len(workspaces)} workspace(s)")
        self._apply_filter()

    # ==================== Settings ====================

    def _capture_loop(self) -> asyncio.AbstractEventLoop | None:
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            return None
        return self._loop

    def _on_settings_changed(self, names: set[str]) -> None:
        """Settings callback; may run on any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._handle_settings_change, names)

    def _handle_settings_change(self, names: set[str]) -> None:
        with self._lock:
            if self._status == ControllerState.DISPOSED or not self._load_started:
                return

        if PREFERRED_EDITION in names:
            logger.info("Preferred edition changed, rediscovering installations")
            self._start_load()
        else:
            self._apply_filter()

    # ==================== Disposal ====================

    async def aclose(self) -> None:
        """Cancel and await outstanding work, then unsubscribe from settings."""
        with self._lock:
            if self._status == ControllerState.DISPOSED:
                return
            self._status = ControllerState.DISPOSED
            self._query.cancellation_epoch += 1
            self._load_generation += 1
            self._query.is_loading = False
            tasks = [task for task in (self._load_task, self._debounce_task) if task is not None]
            self._load_task = None
            self._debounce_task = None
            self._callbacks.clear()

        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._settings.remove_callback(self._on_settings_changed)
        logger.debug("Query controller disposed")

    async def settle(self) -> None:
        """Wait until no load or debounced filter is pending."""
        while True:
            with self._lock:
                pending = {
                    task
                    for task in (self._load_task, self._debounce_task)
                    if task is not None and not task.done()
                }
            if not pending:
                return
            await asyncio.wait(pending)

    async def __aenter__(self) -> "QueryController":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
