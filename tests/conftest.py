"""Pytest configuration and shared fixtures."""

import json
import os
import sqlite3
import sys
from pathlib import Path

import pytest

# Add project paths
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from code_workspaces.models import (  # noqa: E402
    EditorInstallation,
    Edition,
    InstallScope,
    Workspace,
    WorkspaceKind,
)
from code_workspaces.paths import PlatformFolders  # noqa: E402


@pytest.fixture
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(autouse=True)
def setup_env():
    """Set up environment variables for testing."""
    # Save original values
    original_env = dict(os.environ)

    # Set test environment
    os.environ.setdefault("TESTING", "1")

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# Fake installation trees
# ============================================================================


@pytest.fixture
def linux_folders(tmp_path):
    """Linux-style program and app-data folders under tmp_path."""
    folders = PlatformFolders(
        user_programs=tmp_path / "user",
        system_programs=tmp_path / "system",
        app_data=tmp_path / "config",
        platform="linux",
    )
    for folder in (folders.user_programs, folders.system_programs, folders.app_data):
        folder.mkdir(parents=True)
    return folders


def make_executable(path: Path) -> Path:
    """Create an empty file standing in for an editor executable."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("")
    return path


def write_state_db(storage_root: Path, payload) -> Path:
    """Create a state.vscdb with the recently-opened entry set to ``payload``.

    ``payload`` may be a dict (JSON-encoded), raw str/bytes, or None for an
    empty ItemTable.
    """
    storage_root.mkdir(parents=True, exist_ok=True)
    db_path = storage_root / "state.vscdb"
    conn = sqlite3.connect(db_path)
    try:
        conn.execute("CREATE TABLE ItemTable (key TEXT UNIQUE ON CONFLICT REPLACE, value BLOB)")
        if payload is not None:
            value = json.dumps(payload) if isinstance(payload, dict) else payload
            conn.execute(
                "INSERT INTO ItemTable (key, value) VALUES (?, ?)",
                ("history.recentlyOpenedPathsList", value),
            )
        conn.commit()
    finally:
        conn.close()
    return db_path


def write_storage_json(storage_root: Path, document) -> Path:
    """Write storage.json; ``document`` may be a dict or raw text."""
    storage_root.mkdir(parents=True, exist_ok=True)
    path = storage_root / "storage.json"
    path.write_text(document if isinstance(document, str) else json.dumps(document))
    return path


def recent_entries(*items) -> dict:
    """Build a recently-opened document from ("folder"|"workspace", uri) pairs."""
    entries = []
    for kind, uri in items:
        if kind == "folder":
            entries.append({"folderUri": uri})
        else:
            entries.append({"workspace": {"id": "abc", "configPath": uri}})
    return {"entries": entries}


@pytest.fixture
def make_installation(tmp_path):
    """Factory for EditorInstallation objects with a storage root under tmp_path."""

    def _make(
        name: str = "VS Code",
        edition: Edition = Edition.DEFAULT,
        scope: InstallScope = InstallScope.USER,
        executable: str | None = None,
        storage_root: Path | None = None,
    ) -> EditorInstallation:
        storage = storage_root or tmp_path / "storage" / name.replace(" ", "_")
        return EditorInstallation(
            display_name=name,
            executable_path=executable or str(tmp_path / "bin" / name.replace(" ", "_")),
            storage_root=str(storage),
            install_scope=scope,
            edition=edition,
        )

    return _make


@pytest.fixture
def installation(make_installation):
    """A default-edition user installation."""
    return make_installation()


@pytest.fixture
def make_workspaces(installation):
    """Factory building folder workspaces from display names."""

    def _make(*names: str, inst: EditorInstallation | None = None) -> list[Workspace]:
        owner = inst or installation
        return [Workspace(owner, f"file:///home/me/{name}", WorkspaceKind.FOLDER) for name in names]

    return _make


@pytest.fixture
def settings_file(tmp_path):
    """Path of a settings.json under tmp_path (not created)."""
    return tmp_path / "settings" / "settings.json"


@pytest.fixture
def settings_manager(settings_file):
    """SettingsManager bound to a temporary file."""
    from code_workspaces.settings_manager import SettingsManager

    return SettingsManager(settings_file)
