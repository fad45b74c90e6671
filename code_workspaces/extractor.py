"""
Workspace Extractor - Read recently-opened workspaces for one installation.

Two independent sources live in an installation's globalStorage directory:

- state.vscdb (SQLite): ItemTable row ``history.recentlyOpenedPathsList``
  holds a JSON document ``{"entries": [{"folderUri": ...},
  {"workspace": {"configPath": ...}}, ...]}``
- storage.json: ``backupWorkspaces.workspaces[].configURIPath`` and
  ``backupWorkspaces.folders[].folderUri``

Both are opened read-only and read concurrently. A missing file is not an
error; a malformed one is logged and contributes nothing. Records whose path
is blank or has no "/" are dropped without logging.

Usage:
    from code_workspaces.extractor import WorkspaceExtractor

    workspaces = await WorkspaceExtractor().extract(installation)
"""

import asyncio
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

import aiosqlite

from .models import EditorInstallation, Workspace, WorkspaceKind, is_valid_workspace_path

logger = logging.getLogger(__name__)

STATE_DB_NAME = "state.vscdb"
STORAGE_JSON_NAME = "storage.json"
RECENT_PATHS_KEY = "history.recentlyOpenedPathsList"


def _append(
    workspaces: list[Workspace],
    installation: EditorInstallation,
    raw_path: Any,
    kind: WorkspaceKind,
) -> None:
    """Append a workspace if its raw path passes the validity filter."""
    if is_valid_workspace_path(raw_path):
        workspaces.append(Workspace(installation, raw_path, kind))


def parse_recent_history(payload: str, installation: EditorInstallation) -> list[Workspace]:
    """Parse the recently-opened JSON document from state.vscdb.

    Args:
        payload: JSON text stored under RECENT_PATHS_KEY
        installation: Installation the entries belong to

    Returns:
        Workspaces in entry order

    Raises:
        json.JSONDecodeError: If the payload is not JSON
    """
    workspaces: list[Workspace] = []
    document = json.loads(payload)
    if not isinstance(document, dict):
        return workspaces

    entries = document.get("entries")
    if not isinstance(entries, list):
        return workspaces

    for entry in entries:
        if not isinstance(entry, dict):
            continue
        if "folderUri" in entry:
            _append(workspaces, installation, entry["folderUri"], WorkspaceKind.FOLDER)
        elif isinstance(entry.get("workspace"), dict):
            _append(
                workspaces,
                installation,
                entry["workspace"].get("configPath"),
                WorkspaceKind.WORKSPACE,
            )

    return workspaces


def parse_backup_workspaces(document: Any, installation: EditorInstallation) -> list[Workspace]:
    """Extract workspaces from a parsed storage.json document.

    Workspace files come first, then folders, each in array order.
    """
    workspaces: list[Workspace] = []
    if not isinstance(document, dict):
        return workspaces

    backups = document.get("backupWorkspaces")
    if not isinstance(backups, dict):
        return workspaces

    items = backups.get("workspaces")
    if isinstance(items, list):
        for item in items:
            if isinstance(item, dict):
                _append(workspaces, installation, item.get("configURIPath"), WorkspaceKind.WORKSPACE)

    items = backups.get("folders")
    if isinstance(items, list):
        for item in items:
            if isinstance(item, dict):
                _append(workspaces, installation, item.get("folderUri"), WorkspaceKind.FOLDER)

    return workspaces


class WorkspaceExtractor:
    """
    Read the workspace history of a single installation.

    Stateless: one instance can serve concurrent extract() calls for
    different installations.
    """

    async def extract(self, installation: EditorInstallation) -> list[Workspace]:
        """
        Read both sources of an installation.

        Never raises for missing or malformed state; cancellation propagates.

        Args:
            installation: Installation whose storage root is read

        Returns:
            Source A workspaces followed by source B workspaces
        """
        storage_root = Path(installation.storage_root)
        if not storage_root.is_dir():
            logger.debug(f"No storage directory for {installation.display_name}: {storage_root}")
            return []

        recent, backups = await asyncio.gather(
            self.read_recent_history(installation),
            self.read_backup_workspaces(installation),
        )

        logger.debug(
            f"{installation.display_name}: {len(recent)} recent, {len(backups)} backup workspace(s)"
        )
        return recent + backups

    async def read_recent_history(self, installation: EditorInstallation) -> list[Workspace]:
        """Read source A (state.vscdb) of an installation."""
        db_path = Path(installation.storage_root) / STATE_DB_NAME
        if not db_path.exists():
            return []

        try:
            async with aiosqlite.connect(f"{db_path.as_uri()}?mode=ro", uri=True) as db:
                async with db.execute(
                    "SELECT value FROM ItemTable WHERE key = ?", (RECENT_PATHS_KEY,)
                ) as cursor:
                    row = await cursor.fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Error reading {db_path}: {e}")
            return []
        except OSError as e:
            logger.warning(f"Failed to open {db_path}: {e}")
            return []

        if row is None or row[0] is None:
            return []

        payload = row[0]
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")
        if not isinstance(payload, str) or not payload.strip():
            return []

        try:
            return parse_recent_history(payload, installation)
        except json.JSONDecodeError as e:
            logger.warning(f"Error parsing {STATE_DB_NAME} for {installation.display_name}: {e}")
            return []
        except (TypeError, AttributeError, ValueError, RecursionError) as e:
            logger.warning(f"Unexpected {STATE_DB_NAME} shape for {installation.display_name}: {e}")
            return []

    async def read_backup_workspaces(self, installation: EditorInstallation) -> list[Workspace]:
        """Read source B (storage.json) of an installation."""
        storage_file = Path(installation.storage_root) / STORAGE_JSON_NAME
        if not storage_file.exists():
            return []

        try:
            text = await asyncio.to_thread(storage_file.read_text, encoding="utf-8")
            return parse_backup_workspaces(json.loads(text), installation)
        except json.JSONDecodeError as e:
            logger.warning(f"Error parsing {STORAGE_JSON_NAME} for {installation.display_name}: {e}")
            return []
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {storage_file}: {e}")
            return []
        except (TypeError, AttributeError, ValueError, RecursionError) as e:
            logger.warning(f"Unexpected {STORAGE_JSON_NAME} shape for {installation.display_name}: {e}")
            return []
