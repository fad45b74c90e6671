"""
Data models for workspace discovery and search.

These models define the data structures used throughout the package:
- EditorInstallation: One located editor executable plus its state directory
- Workspace: One recently-opened folder or workspace file
- SearchResult: A Workspace with its fuzzy match score
- QueryState: Incremental-search state owned by the QueryController

Enums mirror the string values stored in settings.json so that settings can
be converted with ``Enum(value)``.
"""

from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import unquote


class InstallScope(str, Enum):
    USER = "User"
    SYSTEM = "System"


class Edition(str, Enum):
    DEFAULT = "Default"
    INSIDER = "Insider"


class WorkspaceKind(str, Enum):
    FOLDER = "Folder"
    WORKSPACE = "Workspace"


class SearchMode(str, Enum):
    STRICT = "strict"
    FUZZY = "fuzzy"


class TagType(str, Enum):
    NONE = "None"
    TYPE = "Type"
    TARGET = "Target"
    TYPE_AND_TARGET = "TypeAndTarget"


class CommandResult(str, Enum):
    """What the caller should do after an open action completes."""

    DISMISS = "Dismiss"
    GO_BACK = "GoBack"
    KEEP_OPEN = "KeepOpen"


class ControllerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    FILTERING = "filtering"
    READY = "ready"
    EMPTY = "empty"
    DISPOSED = "disposed"


@dataclass(frozen=True, eq=False)
class EditorInstallation:
    """
    One installation of the editor.

    Identity is the executable path compared case-insensitively, so two
    probes that reach the same executable with different casing are equal.
    """

    display_name: str  # "VS Code", "VS Code - Insiders [System]", ...
    executable_path: str
    storage_root: str  # per-user globalStorage directory
    install_scope: InstallScope
    edition: Edition
    icon: str = "vscode"

    @property
    def key(self) -> str:
        return self.executable_path.casefold()

    @property
    def edition_label(self) -> str:
        """Edition tag shown next to workspaces ("" for the default edition)."""
        return "Insider" if self.edition == Edition.INSIDER else ""

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EditorInstallation):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.display_name,
            "executable": self.executable_path,
            "storage": self.storage_root,
            "scope": self.install_scope.value,
            "edition": self.edition.value,
        }


def is_valid_workspace_path(raw_path: object) -> bool:
    """Check that a raw path read from editor state is usable.

    Valid paths are non-blank strings containing at least one "/".
    """
    return isinstance(raw_path, str) and bool(raw_path.strip()) and "/" in raw_path


@dataclass(frozen=True)
class Workspace:
    """
    One recently-used folder or workspace file.

    ``raw_path`` is kept exactly as read from the source (URI-encoded) because
    that is what the editor expects back on the command line. Everything used
    for display, copy and search is derived once here, including the
    case-folded search keys, so filtering never re-folds strings.
    """

    installation: EditorInstallation = field(compare=False)
    raw_path: str
    kind: WorkspaceKind
    decoded_path: str = field(init=False, compare=False)
    display_name: str = field(init=False, compare=False)
    name_key: str = field(init=False, repr=False, compare=False)
    path_key: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        decoded = unquote(self.raw_path)
        name = decoded.rstrip("/").rsplit("/", 1)[-1] or decoded
        object.__setattr__(self, "decoded_path", decoded)
        object.__setattr__(self, "display_name", name)
        object.__setattr__(self, "name_key", name.casefold())
        object.__setattr__(self, "path_key", decoded.casefold())

    @property
    def dedup_key(self) -> str:
        return self.path_key

    @property
    def kind_label(self) -> str:
        return self.kind.value

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.display_name,
            "path": self.decoded_path,
            "uri": self.raw_path,
            "type": self.kind.value,
            "instance": self.installation.display_name,
        }


@dataclass(frozen=True)
class SearchResult:
    """A workspace with its match score (fuzzy mode only)."""

    workspace: Workspace
    score: float | None = None


@dataclass
class QueryState:
    """
    Incremental-search state.

    Owned by the QueryController and only mutated while its lock is held.
    ``cancellation_epoch`` increases on every search-text change; pending
    filter work compares its captured epoch before committing.
    """

    search_text: str = ""
    page_size: int = 50
    current_page_count: int = 0
    has_more_items: bool = False
    is_loading: bool = False
    cancellation_epoch: int = 0
