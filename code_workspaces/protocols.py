"""Protocol definitions for collaborator seams.

The QueryController only talks to its configuration provider and row
factory through these Protocols (structural subtyping), so tests and other
front-ends can pass any object with the right shape.

Usage:
    from code_workspaces.protocols import SettingsProvider, RowFactory

    def build(settings: SettingsProvider) -> None:
        settings.add_callback(on_change)
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .models import CommandResult, Edition, SearchMode, TagType, Workspace

if TYPE_CHECKING:
    from .rows import ListRow


@runtime_checkable
class SettingsProvider(Protocol):
    """Typed settings plus a "settings changed" notification.

    Callbacks receive the names of the settings that changed.
    """

    @property
    def search_mode(self) -> SearchMode: ...

    @property
    def show_details(self) -> bool: ...

    @property
    def preferred_edition(self) -> Edition: ...

    @property
    def tag_type(self) -> TagType: ...

    @property
    def command_result(self) -> CommandResult: ...

    @property
    def page_size(self) -> int: ...

    @property
    def search_delay(self) -> int: ...

    def add_callback(self, callback: Callable[[set[str]], None]) -> None: ...

    def remove_callback(self, callback: Callable[[set[str]], None]) -> None: ...


@runtime_checkable
class RowFactory(Protocol):
    """Turns workspaces into display rows."""

    def create_row(self, workspace: Workspace) -> "ListRow": ...

    def no_results_row(self) -> "ListRow": ...
