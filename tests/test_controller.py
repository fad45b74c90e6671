"""Tests for code_workspaces.controller - debounce, pagination, refresh and disposal."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from code_workspaces.controller import QueryController
from code_workspaces.models import (
    CommandResult,
    ControllerState,
    Edition,
    SearchMode,
    TagType,
)
from code_workspaces.rows import NO_RESULTS_TITLE, ReloadCommand
from code_workspaces.search_index import SearchIndex


class FakeSettings:
    """In-memory settings provider."""

    def __init__(self, **overrides):
        self.search_mode = SearchMode.FUZZY
        self.show_details = False
        self.preferred_edition = Edition.DEFAULT
        self.tag_type = TagType.TYPE
        self.command_result = CommandResult.DISMISS
        self.page_size = 50
        self.search_delay = 0
        for name, value in overrides.items():
            setattr(self, name, value)
        self.callbacks = []

    def add_callback(self, callback):
        self.callbacks.append(callback)

    def remove_callback(self, callback):
        if callback in self.callbacks:
            self.callbacks.remove(callback)

    def change(self, name, attr, value):
        setattr(self, attr, value)
        for callback in list(self.callbacks):
            callback({name})


def _aggregator(workspaces):
    aggregator = MagicMock()
    aggregator.refresh = AsyncMock(return_value=workspaces)
    aggregator.installations = ()
    return aggregator


async def _loaded(controller):
    controller.get_items()
    await controller.settle()
    return controller


def _titles(rows):
    return [row.title for row in rows]


# ==================== Construction ====================


class TestConstruction:
    """Injected collaborators are used as given."""

    @pytest.mark.asyncio
    async def test_empty_injected_index_is_kept(self):
        index = SearchIndex()
        assert len(index) == 0

        controller = QueryController(FakeSettings(), aggregator=_aggregator([]), index=index)

        assert controller._index is index
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_default_rows_offer_reload(self, make_workspaces):
        aggregator = _aggregator(make_workspaces("api"))
        controller = await _loaded(QueryController(FakeSettings(), aggregator=aggregator))

        row = controller.get_items()[0]
        reload_command = row.more_commands[-1]
        assert isinstance(reload_command, ReloadCommand)

        controller.update_search_text("zzz")
        await controller.settle()
        result = await reload_command.invoke()
        await controller.settle()

        assert result.success
        assert aggregator.refresh.await_count == 2
        assert controller.search_text == ""
        assert _titles(controller.get_items()) == ["api"]
        await controller.aclose()


# ==================== Loading ====================


class TestLoading:
    """Idle → Loading → Ready/Empty."""

    @pytest.mark.asyncio
    async def test_first_get_items_starts_load(self, make_workspaces):
        aggregator = _aggregator(make_workspaces("api", "web"))
        controller = QueryController(FakeSettings(), aggregator=aggregator)

        assert controller.state == ControllerState.IDLE
        assert controller.get_items() == []
        assert controller.is_loading is True
        assert controller.state == ControllerState.LOADING

        await controller.settle()

        assert controller.state == ControllerState.READY
        assert controller.is_loading is False
        assert _titles(controller.get_items()) == ["api", "web"]
        aggregator.refresh.assert_awaited_once_with(Edition.DEFAULT)
        assert controller.installations == ()
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_second_get_items_does_not_reload(self, make_workspaces):
        aggregator = _aggregator(make_workspaces("api"))
        controller = await _loaded(QueryController(FakeSettings(), aggregator=aggregator))

        controller.get_items()
        await controller.settle()

        assert aggregator.refresh.await_count == 1
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_no_workspaces_gives_sentinel(self):
        controller = await _loaded(QueryController(FakeSettings(), aggregator=_aggregator([])))

        rows = controller.get_items()

        assert controller.state == ControllerState.EMPTY
        assert len(rows) == 1
        assert rows[0].title == NO_RESULTS_TITLE
        assert rows[0].is_placeholder
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_aggregation_failure_keeps_previous_items(self, make_workspaces):
        aggregator = _aggregator(make_workspaces("api"))
        controller = await _loaded(QueryController(FakeSettings(), aggregator=aggregator))

        aggregator.refresh.side_effect = RuntimeError("disk on fire")
        await controller.refresh(wait=True)

        assert controller.is_loading is False
        assert controller.state == ControllerState.READY
        assert _titles(controller.get_items()) == ["api"]
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_failed_first_load_is_not_retried_by_get_items(self):
        aggregator = _aggregator([])
        aggregator.refresh.side_effect = RuntimeError("boom")
        controller = await _loaded(QueryController(FakeSettings(), aggregator=aggregator))

        rows = controller.get_items()
        await controller.settle()

        assert rows[0].is_placeholder
        assert aggregator.refresh.await_count == 1
        await controller.aclose()


# ==================== Pagination ====================


class TestPagination:
    """load_more() serves P, 2P, ... up to N."""

    @pytest.mark.asyncio
    async def test_pages(self, make_workspaces):
        names = [f"ws{i:03d}" for i in range(120)]
        controller = await _loaded(
            QueryController(FakeSettings(page_size=50), aggregator=_aggregator(make_workspaces(*names)))
        )

        assert len(controller.get_items()) == 50
        assert controller.has_more_items is True

        assert controller.load_more() is True
        assert len(controller.get_items()) == 100
        assert controller.has_more_items is True

        assert controller.load_more() is True
        assert len(controller.get_items()) == 120
        assert controller.has_more_items is False

        assert controller.load_more() is False
        assert len(controller.get_items()) == 120
        assert _titles(controller.get_items()) == names
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_exact_multiple(self, make_workspaces):
        controller = await _loaded(
            QueryController(FakeSettings(page_size=2), aggregator=_aggregator(make_workspaces("a", "b", "c", "d")))
        )

        assert controller.load_more() is True
        assert len(controller.get_items()) == 4
        assert controller.has_more_items is False
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_fewer_than_one_page(self, make_workspaces):
        controller = await _loaded(
            QueryController(FakeSettings(page_size=10), aggregator=_aggregator(make_workspaces("a", "b")))
        )

        assert controller.has_more_items is False
        assert controller.load_more() is False
        assert controller.query_state.current_page_count == 1
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_new_query_resets_to_first_page(self, make_workspaces):
        names = [f"ws{i}" for i in range(10)]
        controller = await _loaded(
            QueryController(FakeSettings(page_size=3), aggregator=_aggregator(make_workspaces(*names)))
        )
        controller.load_more()
        controller.load_more()
        assert len(controller.get_items()) == 9

        controller.update_search_text("ws")
        await controller.settle()

        assert controller.query_state.current_page_count == 1
        assert len(controller.get_items()) == 3
        assert controller.has_more_items is True
        await controller.aclose()


# ==================== Search text and debounce ====================


class TestSearchText:
    """update_search_text() debouncing and epochs."""

    @pytest.mark.asyncio
    async def test_rapid_typing_filters_once(self, make_workspaces):
        index = SearchIndex()
        index.filter = MagicMock(wraps=index.filter)
        controller = await _loaded(
            QueryController(
                FakeSettings(search_delay=50),
                aggregator=_aggregator(make_workspaces("abc", "abd", "xyz")),
                index=index,
            )
        )
        index.filter.reset_mock()

        controller.update_search_text("a")
        await asyncio.sleep(0.01)
        controller.update_search_text("ab")
        await asyncio.sleep(0.01)
        controller.update_search_text("abc")
        assert controller.state == ControllerState.FILTERING

        await controller.settle()

        index.filter.assert_called_once_with("abc", SearchMode.FUZZY)
        assert _titles(controller.get_items()) == ["abc"]
        assert controller.state == ControllerState.READY
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_epoch_increments_per_change(self, make_workspaces):
        controller = await _loaded(QueryController(FakeSettings(), aggregator=_aggregator(make_workspaces("a"))))
        before = controller.query_state.cancellation_epoch

        controller.update_search_text("x")
        controller.update_search_text("xy")

        assert controller.query_state.cancellation_epoch == before + 2
        await controller.settle()
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_same_text_is_ignored(self, make_workspaces):
        controller = await _loaded(QueryController(FakeSettings(), aggregator=_aggregator(make_workspaces("a"))))
        epoch = controller.query_state.cancellation_epoch

        controller.update_search_text("")

        assert controller.query_state.cancellation_epoch == epoch
        assert controller.state == ControllerState.READY
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_no_match_gives_sentinel(self, make_workspaces):
        controller = await _loaded(QueryController(FakeSettings(), aggregator=_aggregator(make_workspaces("api"))))

        controller.update_search_text("zzz")
        await controller.settle()

        assert controller.state == ControllerState.EMPTY
        assert _titles(controller.get_items()) == [NO_RESULTS_TITLE]

        controller.update_search_text("")
        await controller.settle()
        assert _titles(controller.get_items()) == ["api"]
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_strict_mode_from_settings(self, make_workspaces):
        controller = await _loaded(
            QueryController(
                FakeSettings(search_mode=SearchMode.STRICT),
                aggregator=_aggregator(make_workspaces("a1bc", "xabcx", "abd")),
            )
        )

        controller.update_search_text("abc")
        await controller.settle()

        assert _titles(controller.get_items()) == ["xabcx"]
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_typing_during_load_applies_to_loaded_items(self, make_workspaces):
        release = asyncio.Event()
        workspaces = make_workspaces("api", "web")

        async def slow_refresh(edition):
            await release.wait()
            return workspaces

        aggregator = _aggregator([])
        aggregator.refresh.side_effect = slow_refresh
        controller = QueryController(FakeSettings(), aggregator=aggregator)

        controller.get_items()
        controller.update_search_text("we")
        await asyncio.sleep(0.01)
        assert controller.is_loading is True

        release.set()
        await controller.settle()

        assert _titles(controller.get_items()) == ["web"]
        assert aggregator.refresh.await_count == 1
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_items_changed_callback(self, make_workspaces):
        controller = QueryController(FakeSettings(), aggregator=_aggregator(make_workspaces("api")))
        callback = MagicMock()
        controller.add_callback(callback)

        await _loaded(controller)
        calls = callback.call_count
        assert calls >= 1

        controller.remove_callback(callback)
        controller.update_search_text("a")
        await controller.settle()
        assert callback.call_count == calls
        await controller.aclose()


# ==================== Refresh ====================


class TestRefresh:
    """Explicit refresh and superseded loads."""

    @pytest.mark.asyncio
    async def test_newer_refresh_wins(self, make_workspaces):
        old_started = asyncio.Event()
        release_old = asyncio.Event()
        old = make_workspaces("old")
        new = make_workspaces("new")

        async def refresh(edition):
            if aggregator.refresh.await_count == 1:
                old_started.set()
                await release_old.wait()
                return old
            return new

        aggregator = _aggregator([])
        aggregator.refresh.side_effect = refresh
        controller = QueryController(FakeSettings(), aggregator=aggregator)

        await controller.refresh()
        await old_started.wait()
        await controller.refresh(wait=True)
        release_old.set()
        await controller.settle()

        assert _titles(controller.get_items()) == ["new"]
        assert controller.is_loading is False
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_refresh_reapplies_current_query(self, make_workspaces):
        aggregator = _aggregator(make_workspaces("api", "web"))
        controller = await _loaded(QueryController(FakeSettings(), aggregator=aggregator))
        controller.update_search_text("web")
        await controller.settle()

        aggregator.refresh.return_value = make_workspaces("api", "web", "webhooks")
        await controller.refresh(wait=True)

        assert controller.search_text == "web"
        assert _titles(controller.get_items()) == ["web", "webhooks"]
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_refresh_cancels_pending_filter(self, make_workspaces):
        index = SearchIndex()
        index.filter = MagicMock(wraps=index.filter)
        aggregator = _aggregator(make_workspaces("api", "web"))
        controller = await _loaded(
            QueryController(FakeSettings(search_delay=1000), aggregator=aggregator, index=index)
        )
        index.filter.reset_mock()

        controller.update_search_text("api")
        await controller.refresh(wait=True)
        await controller.settle()

        index.filter.assert_called_once_with("api", SearchMode.FUZZY)
        assert _titles(controller.get_items()) == ["api"]
        await controller.aclose()


# ==================== Settings ====================


class TestSettingsChanges:
    """Reaction to configuration changes."""

    @pytest.mark.asyncio
    async def test_preferred_edition_triggers_refresh(self, make_workspaces):
        settings = FakeSettings()
        aggregator = _aggregator(make_workspaces("api"))
        controller = await _loaded(QueryController(settings, aggregator=aggregator))

        settings.change("preferredEdition", "preferred_edition", Edition.INSIDER)
        await asyncio.sleep(0)
        await controller.settle()

        assert aggregator.refresh.await_count == 2
        aggregator.refresh.assert_awaited_with(Edition.INSIDER)
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_other_change_refilters(self, make_workspaces):
        settings = FakeSettings(page_size=1)
        aggregator = _aggregator(make_workspaces("api", "web"))
        controller = await _loaded(QueryController(settings, aggregator=aggregator))
        assert controller.get_items()[0].tags == ["Folder"]

        settings.tag_type = TagType.TARGET
        settings.change("pageSize", "page_size", 5)
        await asyncio.sleep(0)

        rows = controller.get_items()
        assert len(rows) == 2
        assert rows[0].tags == ["VS Code"]
        assert aggregator.refresh.await_count == 1
        await controller.aclose()

    @pytest.mark.asyncio
    async def test_changes_from_other_threads(self, make_workspaces):
        settings = FakeSettings()
        aggregator = _aggregator(make_workspaces("api"))
        controller = await _loaded(QueryController(settings, aggregator=aggregator))

        await asyncio.to_thread(settings.change, "preferredEdition", "preferred_edition", Edition.INSIDER)
        await asyncio.sleep(0.01)
        await controller.settle()

        assert aggregator.refresh.await_count == 2
        await controller.aclose()


# ==================== Disposal ====================


class TestDisposal:
    @pytest.mark.asyncio
    async def test_aclose_cancels_load_and_unsubscribes(self):
        started = asyncio.Event()

        async def never(edition):
            started.set()
            await asyncio.sleep(60)

        settings = FakeSettings()
        aggregator = _aggregator([])
        aggregator.refresh.side_effect = never
        controller = QueryController(settings, aggregator=aggregator)
        assert len(settings.callbacks) == 1

        controller.get_items()
        await started.wait()
        await controller.aclose()

        assert controller.state == ControllerState.DISPOSED
        assert controller.is_loading is False
        assert settings.callbacks == []
        assert controller.get_items() == []

    @pytest.mark.asyncio
    async def test_aclose_cancels_pending_filter(self, make_workspaces):
        index = SearchIndex()
        index.filter = MagicMock(wraps=index.filter)
        controller = await _loaded(
            QueryController(FakeSettings(search_delay=1000), aggregator=_aggregator(make_workspaces("a")), index=index)
        )
        index.filter.reset_mock()

        controller.update_search_text("a")
        await controller.aclose()
        await asyncio.sleep(0)

        index.filter.assert_not_called()

    @pytest.mark.asyncio
    async def test_operations_after_dispose_are_noops(self, make_workspaces):
        controller = await _loaded(QueryController(FakeSettings(), aggregator=_aggregator(make_workspaces("a"))))
        await controller.aclose()
        await controller.aclose()

        controller.update_search_text("x")
        await controller.refresh(wait=True)

        assert controller.load_more() is False
        assert controller.search_text == ""
        assert controller.state == ControllerState.DISPOSED

    @pytest.mark.asyncio
    async def test_async_context_manager(self, make_workspaces):
        async with QueryController(FakeSettings(), aggregator=_aggregator(make_workspaces("a"))) as controller:
            await _loaded(controller)
        assert controller.state == ControllerState.DISPOSED
