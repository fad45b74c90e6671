"""
Instance Locator - Find installed copies of the editor.

Discovery Pattern:
    1. Probe the four fixed (scope, edition) locations for the running OS
    2. Scan every PATH entry: the editor's CLI lives in <install>/bin, so the
       parent of each entry is checked for a default and insider executable
    3. Keep an installation only if its executable exists, first match wins
       per executable path (case-insensitive)
    4. Stable-partition the result so the preferred edition comes first

Usage:
    from code_workspaces.locator import InstanceLocator

    installations = InstanceLocator().locate(preferred_edition=Edition.INSIDER)
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .models import EditorInstallation, Edition, InstallScope
from .paths import PlatformFolders

logger = logging.getLogger(__name__)

DEFAULT_NAME = "VS Code"
INSIDER_NAME = "VS Code - Insiders"


@dataclass(frozen=True)
class _ProbeTemplate:
    """Where one (scope, edition) combination is installed, relative to a base folder."""

    display_name: str
    base: str  # "user" or "system"
    executable: tuple[str, ...]
    scope: InstallScope
    edition: Edition


def _templates(folders: PlatformFolders) -> list[_ProbeTemplate]:
    """Return the four fixed probe locations for the folders' platform."""
    if folders.is_windows:
        default_exe: tuple[str, ...] = ("Microsoft VS Code", "Code.exe")
        insider_exe: tuple[str, ...] = ("Microsoft VS Code Insiders", "Code - Insiders.exe")
    elif folders.is_macos:
        default_exe = ("Visual Studio Code.app", "Contents", "MacOS", "Electron")
        insider_exe = ("Visual Studio Code - Insiders.app", "Contents", "MacOS", "Electron")
    else:
        default_exe = ("code", "code")
        insider_exe = ("code-insiders", "code-insiders")

    return [
        _ProbeTemplate(DEFAULT_NAME, "user", default_exe, InstallScope.USER, Edition.DEFAULT),
        _ProbeTemplate(
            f"{DEFAULT_NAME} [System]", "system", default_exe, InstallScope.SYSTEM, Edition.DEFAULT
        ),
        _ProbeTemplate(INSIDER_NAME, "user", insider_exe, InstallScope.USER, Edition.INSIDER),
        _ProbeTemplate(
            f"{INSIDER_NAME} [System]", "system", insider_exe, InstallScope.SYSTEM, Edition.INSIDER
        ),
    ]


def _custom_executable_names(folders: PlatformFolders) -> tuple[str, str]:
    """Executable names looked for next to a PATH entry (default, insider)."""
    if folders.is_windows:
        return "code.exe", "Code - Insiders.exe"
    return "code", "code-insiders"


def storage_root_for(folders: PlatformFolders, edition: Edition) -> Path:
    """Per-user globalStorage directory shared by every install of an edition."""
    product = "Code - Insiders" if edition == Edition.INSIDER else "Code"
    return folders.app_data / product / "User" / "globalStorage"


def order_by_preference(
    installations: list[EditorInstallation], preferred_edition: Edition
) -> list[EditorInstallation]:
    """Move installations of the preferred edition to the front.

    This is a stable partition: relative order inside each group is kept.
    """
    return sorted(installations, key=lambda inst: inst.edition != preferred_edition)


class InstanceLocator:
    """
    Enumerate editor installations from well-known folders and PATH.

    Each call to locate() builds a fresh list; nothing is cached between
    passes.
    """

    def __init__(
        self,
        folders: PlatformFolders | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        """
        Initialize the locator.

        Args:
            folders: OS folders to probe (default: resolved from the environment)
            environ: Environment providing PATH (default: os.environ)
        """
        self.environ = os.environ if environ is None else environ
        self.folders = folders or PlatformFolders.from_environment(self.environ)

    def locate(self, preferred_edition: Edition = Edition.DEFAULT) -> list[EditorInstallation]:
        """
        Locate installations, preferred edition first.

        Args:
            preferred_edition: Edition to sort to the front

        Returns:
            Installations in preference order, unique by executable path
        """
        found: list[EditorInstallation] = []
        seen: set[str] = set()

        for template in _templates(self.folders):
            base = self.folders.user_programs if template.base == "user" else self.folders.system_programs
            self._add(
                found,
                seen,
                template.display_name,
                base.joinpath(*template.executable),
                template.scope,
                template.edition,
            )

        self._scan_search_path(found, seen)

        ordered = order_by_preference(found, preferred_edition)
        logger.info(
            f"Located {len(ordered)} installation(s): {[inst.display_name for inst in ordered]}"
        )
        return ordered

    def _scan_search_path(self, found: list[EditorInstallation], seen: set[str]) -> None:
        """Probe the parent directory of every PATH entry for custom installs."""
        path_env = self.environ.get("PATH", "")
        if not path_env:
            return

        separator = ";" if self.folders.is_windows else os.pathsep
        default_exe, insider_exe = _custom_executable_names(self.folders)

        for entry in path_env.split(separator):
            if not entry:
                continue
            try:
                directory = Path(entry)
                if not directory.is_dir():
                    continue
                parent = directory.parent
                self._add(
                    found,
                    seen,
                    f"{DEFAULT_NAME} [Custom]",
                    parent / default_exe,
                    InstallScope.USER,
                    Edition.DEFAULT,
                )
                self._add(
                    found,
                    seen,
                    f"{INSIDER_NAME} [Custom]",
                    parent / insider_exe,
                    InstallScope.USER,
                    Edition.INSIDER,
                )
            except (OSError, ValueError) as e:
                logger.debug(f"Skipping PATH entry {entry!r}: {e}")

    def _add(
        self,
        found: list[EditorInstallation],
        seen: set[str],
        name: str,
        executable: Path,
        scope: InstallScope,
        edition: Edition,
    ) -> None:
        """Append an installation if its executable exists and is not known yet."""
        if not executable.is_file():
            return

        installation = EditorInstallation(
            display_name=name,
            executable_path=str(executable),
            storage_root=str(storage_root_for(self.folders, edition)),
            install_scope=scope,
            edition=edition,
            icon="vscode-insiders" if edition == Edition.INSIDER else "vscode",
        )
        if installation.key in seen:
            return

        seen.add(installation.key)
        found.append(installation)
        logger.debug(f"Found {name} at {executable}")
