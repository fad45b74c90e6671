"""Centralized path definitions.

Application state lives under ~/.config/code-workspaces/ following XDG
conventions. This module is the single source of truth for that directory
and for the per-OS folders the editor installs itself into.

Usage:
    from code_workspaces.paths import SETTINGS_FILE, PlatformFolders

    folders = PlatformFolders.from_environment()
"""

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

# Base directory for all state (override with CODE_WORKSPACES_CONFIG_DIR)
APP_CONFIG_DIR = Path(
    os.environ.get("CODE_WORKSPACES_CONFIG_DIR")
    or Path.home() / ".config" / "code-workspaces"
)

# Persisted settings (search mode, tags, page size, ...)
SETTINGS_FILE = APP_CONFIG_DIR / "settings.json"


def ensure_config_dir() -> None:
    """Create the config directory if it doesn't exist.

    Call this explicitly before writing to any file under APP_CONFIG_DIR.
    """
    APP_CONFIG_DIR.mkdir(parents=True, exist_ok=True)


# =============================================================================
# Editor folders
# =============================================================================


@dataclass(frozen=True)
class PlatformFolders:
    """Well-known OS folders the editor is installed into.

    Attributes:
        user_programs: Per-user program folder (e.g. %LOCALAPPDATA%\\Programs)
        system_programs: Per-machine program folder (e.g. %ProgramFiles%)
        app_data: Per-user application-data folder holding editor state
        platform: sys.platform style identifier ("win32", "linux", "darwin")
    """

    user_programs: Path
    system_programs: Path
    app_data: Path
    platform: str

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str] | None = None,
        platform: str | None = None,
    ) -> "PlatformFolders":
        """Resolve the folders for the running OS.

        Args:
            environ: Environment to read (defaults to os.environ)
            platform: Platform override (defaults to sys.platform)

        Returns:
            PlatformFolders for that platform
        """
        env = os.environ if environ is None else environ
        plat = platform or sys.platform
        home = Path(env.get("HOME") or env.get("USERPROFILE") or Path.home())

        if plat.startswith("win"):
            local = Path(env.get("LOCALAPPDATA") or home / "AppData" / "Local")
            roaming = Path(env.get("APPDATA") or home / "AppData" / "Roaming")
            program_files = Path(env.get("ProgramFiles") or "C:\\Program Files")
            return cls(local / "Programs", program_files, roaming, plat)

        if plat == "darwin":
            return cls(
                home / "Applications",
                Path("/Applications"),
                home / "Library" / "Application Support",
                plat,
            )

        config_home = Path(env.get("XDG_CONFIG_HOME") or home / ".config")
        return cls(home / ".local" / "share", Path("/usr/share"), config_home, plat)

    @property
    def is_windows(self) -> bool:
        return self.platform.startswith("win")

    @property
    def is_macos(self) -> bool:
        return self.platform == "darwin"
