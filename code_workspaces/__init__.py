"""
Code Workspaces - Find and reopen recent VS Code folders and workspaces.

Discovers every installed VS Code edition, reads the recently-opened and
backup-workspace records each one keeps, merges them and serves an
incremental, debounced, paginated search over the result.

Architecture:
    ┌─────────────────────────────────────────────────────────────┐
    │                    QueryController                          │
    │  get_items() / update_search_text() / load_more() / refresh │
    └─────────────────────┬───────────────────────────────────────┘
                          │
    ┌─────────────────────▼───────────────────────────────────────┐
    │                    Aggregator                               │
    │  InstanceLocator → WorkspaceExtractor (per installation)    │
    │  merge + dedupe, preferred edition first                    │
    └─────────────────────┬───────────────────────────────────────┘
                          │
    ┌─────────────────────▼───────────────────────────────────────┐
    │                   SearchIndex                               │
    │  strict substring │ fuzzy subsequence (ranked)              │
    └─────────────────────┬───────────────────────────────────────┘
                          │
    ┌─────────────────────▼───────────────────────────────────────┐
    │               WorkspaceRowFactory                           │
    │  rows, tags, details │ open / copy path / reload commands   │
    └─────────────────────────────────────────────────────────────┘

Usage:
    from code_workspaces import QueryController, get_settings

    controller = QueryController(get_settings())
    controller.get_items()               # starts loading
    controller.update_search_text("api")
    await controller.settle()
    for row in controller.get_items():
        print(row.title, row.subtitle)
    await controller.aclose()
"""

from .aggregator import Aggregator, merge_workspaces
from .controller import QueryController
from .errors import ActionResult, ErrorCodes, action_error, action_success
from .extractor import WorkspaceExtractor
from .locator import InstanceLocator
from .models import (  # noqa: F401
    CommandResult,
    ControllerState,
    EditorInstallation,
    Edition,
    InstallScope,
    QueryState,
    SearchMode,
    SearchResult,
    TagType,
    Workspace,
    WorkspaceKind,
)
from .rows import ListRow, WorkspaceRowFactory
from .search_index import SearchIndex
from .settings_manager import SettingsManager, get_settings

__all__ = [
    # Pipeline
    "InstanceLocator",
    "WorkspaceExtractor",
    "Aggregator",
    "merge_workspaces",
    "SearchIndex",
    "QueryController",
    # Settings
    "SettingsManager",
    "get_settings",
    # Rows and actions
    "ListRow",
    "WorkspaceRowFactory",
    "ActionResult",
    "ErrorCodes",
    "action_error",
    "action_success",
    # Models
    "CommandResult",
    "ControllerState",
    "EditorInstallation",
    "Edition",
    "InstallScope",
    "QueryState",
    "SearchMode",
    "SearchResult",
    "TagType",
    "Workspace",
    "WorkspaceKind",
]

__version__ = "0.1.0"
