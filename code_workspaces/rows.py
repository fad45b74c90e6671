"""
Rows and commands for displaying workspaces.

WorkspaceRowFactory turns a Workspace into a ListRow carrying its title,
decoded path, tags, optional details and the commands that act on it:

- OpenWorkspaceCommand: launch the owning installation on the workspace
- CopyPathCommand: copy the decoded path
- ReloadCommand: re-run discovery through a QueryController

Usage:
    factory = WorkspaceRowFactory(settings)
    row = factory.create_row(workspace)
    result = await row.command.invoke()
    print(result.to_string())
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import unquote

from .actions import copy_to_clipboard, launch_editor
from .errors import ActionResult, ErrorCodes, action_error, action_success
from .models import CommandResult, TagType, Workspace, WorkspaceKind
from .protocols import SettingsProvider

if TYPE_CHECKING:
    from .controller import QueryController

logger = logging.getLogger(__name__)

NO_RESULTS_TITLE = "No workspaces found"
NO_RESULTS_SUBTITLE = "Try a different search or reload"


# ==================== Commands ====================


class Command:
    """Base class for row commands."""

    name: str = ""

    async def invoke(self) -> ActionResult:
        raise NotImplementedError


class NoOpCommand(Command):
    name = "No action"

    async def invoke(self) -> ActionResult:
        return action_success("", result=CommandResult.KEEP_OPEN)


class OpenWorkspaceCommand(Command):
    """Open a workspace with the installation that recorded it."""

    name = "Open"

    def __init__(
        self,
        executable_path: str,
        raw_path: str,
        kind: WorkspaceKind,
        command_result: CommandResult = CommandResult.DISMISS,
    ):
        self.executable_path = executable_path
        self.raw_path = raw_path
        self.kind = kind
        self.command_result = command_result

    async def invoke(self) -> ActionResult:
        return await launch_editor(self.executable_path, self.raw_path, self.kind, self.command_result)


class CopyPathCommand(Command):
    """Copy the decoded path of a workspace."""

    name = "Copy Path"

    def __init__(self, raw_path: str):
        self.raw_path = raw_path

    async def invoke(self) -> ActionResult:
        path = unquote(self.raw_path)
        if await copy_to_clipboard(path):
            return action_success(f"Copied path: {path}")
        return action_error("Failed to copy path.", code=ErrorCodes.CLIPBOARD_UNAVAILABLE)


class ReloadCommand(Command):
    """Re-run workspace discovery and clear the search text."""

    name = "Reload"

    def __init__(self, controller: "QueryController"):
        self.controller = controller

    async def invoke(self) -> ActionResult:
        await self.controller.refresh(wait=True)
        self.controller.update_search_text("")
        return action_success("Reloaded VS Code workspaces.")


# ==================== Rows ====================


@dataclass
class RowDetails:
    """Detail pane content for a row."""

    title: str
    icon: str = ""
    metadata: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class ListRow:
    """One display row. ``workspace`` is None for the no-results sentinel."""

    title: str
    subtitle: str
    command: Command
    tags: list[str] = field(default_factory=list)
    details: RowDetails | None = None
    icon: str = ""
    more_commands: list[Command] = field(default_factory=list)
    workspace: Workspace | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.workspace is None


def workspace_tags(workspace: Workspace, tag_type: TagType) -> list[str]:
    """Tags for a workspace under the configured tag type.

    Type tags are the workspace kind plus "Insider" for insider installs;
    target tags are the installation's display name.
    """
    tags: list[str] = []
    if tag_type in (TagType.TYPE, TagType.TYPE_AND_TARGET):
        tags.append(workspace.kind_label)
        if workspace.installation.edition_label:
            tags.append(workspace.installation.edition_label)
    if tag_type in (TagType.TARGET, TagType.TYPE_AND_TARGET):
        tags.append(workspace.installation.display_name)
    return tags


def workspace_details(workspace: Workspace) -> RowDetails:
    installation = workspace.installation
    return RowDetails(
        title=workspace.display_name,
        icon=installation.icon,
        metadata=[
            ("Name", workspace.display_name),
            ("Path", workspace.decoded_path),
            ("Type", workspace.kind_label),
            ("Instance", installation.display_name),
            ("Edition", installation.edition.value),
        ],
    )


class WorkspaceRowFactory:
    """Build rows from workspaces using the current settings."""

    def __init__(self, settings: SettingsProvider, extra_commands: list[Command] | None = None):
        """
        Args:
            settings: Source of tag type, details toggle and post-open behavior
            extra_commands: Commands appended to every row (e.g. a ReloadCommand)
        """
        self.settings = settings
        self.extra_commands = list(extra_commands or [])

    def create_row(self, workspace: Workspace) -> ListRow:
        installation = workspace.installation
        return ListRow(
            title=workspace.display_name,
            subtitle=workspace.decoded_path,
            command=OpenWorkspaceCommand(
                installation.executable_path,
                workspace.raw_path,
                workspace.kind,
                self.settings.command_result,
            ),
            tags=workspace_tags(workspace, self.settings.tag_type),
            details=workspace_details(workspace) if self.settings.show_details else None,
            icon=installation.icon,
            more_commands=[CopyPathCommand(workspace.raw_path), *self.extra_commands],
            workspace=workspace,
        )

    def no_results_row(self) -> ListRow:
        return ListRow(
            title=NO_RESULTS_TITLE,
            subtitle=NO_RESULTS_SUBTITLE,
            command=NoOpCommand(),
            icon="vscode",
        )
