"""Settings Manager.

Typed access to the "vscode" section of settings.json, with validation
fallbacks and change callbacks.

Usage:
    from code_workspaces.settings_manager import get_settings

    settings = get_settings()
    settings.page_size          # 50 unless configured
    settings.search_mode        # SearchMode.FUZZY unless strict search is on

    def on_change(keys: set[str]) -> None:
        if "preferredEdition" in keys:
            ...

    settings.add_callback(on_change)
    settings.set_value("preferredEdition", "Insider")
"""

import logging
from pathlib import Path
from typing import Any

from .json_file_manager import JsonFileManager
from .models import CommandResult, Edition, SearchMode, TagType
from .paths import SETTINGS_FILE

logger = logging.getLogger(__name__)

SECTION = "vscode"

USE_STRICT_SEARCH = "useStrictSearch"
SHOW_DETAILS = "showDetails"
PREFERRED_EDITION = "preferredEdition"
TAG_TYPE = "tagType"
COMMAND_RESULT = "commandResult"
PAGE_SIZE = "pageSize"
SEARCH_DELAY = "searchDelay"

DEFAULT_PAGE_SIZE = 50
DEFAULT_SEARCH_DELAY_MS = 200

DEFAULTS: dict[str, Any] = {
    USE_STRICT_SEARCH: False,
    SHOW_DETAILS: False,
    PREFERRED_EDITION: Edition.DEFAULT.value,
    TAG_TYPE: TagType.TYPE.value,
    COMMAND_RESULT: CommandResult.DISMISS.value,
    PAGE_SIZE: DEFAULT_PAGE_SIZE,
    SEARCH_DELAY: DEFAULT_SEARCH_DELAY_MS,
}


class SettingsValidationError(Exception):
    """Raised when a setting is written with an unusable value."""


def parse_int(value: Any, default: int, minimum: int) -> int:
    """Parse an int setting stored as a number or numeric string.

    Returns the default for anything unparsable or below the minimum.
    """
    if isinstance(value, bool):
        return default
    try:
        number = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= minimum else default


def parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return default


class SettingsManager(JsonFileManager):
    """Configuration provider backed by a JSON file.

    Callbacks receive bare setting names ("pageSize", ...) for the keys of
    the "vscode" section that changed.
    """

    _file_label = "settings.json"

    def __init__(self, file_path: Path | None = None):
        super().__init__(file_path or SETTINGS_FILE, default_data={SECTION: dict(DEFAULTS)})

    def _notify(self, changed: set[str]) -> None:
        prefix = f"{SECTION}."
        names = {key[len(prefix):] for key in changed if key.startswith(prefix)}
        super()._notify(names)

    def _raw(self, name: str) -> Any:
        return self.get(SECTION, name, DEFAULTS[name])

    # ==================== Typed settings ====================

    @property
    def use_strict_search(self) -> bool:
        return parse_bool(self._raw(USE_STRICT_SEARCH), DEFAULTS[USE_STRICT_SEARCH])

    @property
    def search_mode(self) -> SearchMode:
        return SearchMode.STRICT if self.use_strict_search else SearchMode.FUZZY

    @property
    def show_details(self) -> bool:
        return parse_bool(self._raw(SHOW_DETAILS), DEFAULTS[SHOW_DETAILS])

    @property
    def preferred_edition(self) -> Edition:
        try:
            return Edition(self._raw(PREFERRED_EDITION))
        except ValueError:
            return Edition.DEFAULT

    @property
    def tag_type(self) -> TagType:
        try:
            return TagType(self._raw(TAG_TYPE))
        except ValueError:
            return TagType.TYPE

    @property
    def command_result(self) -> CommandResult:
        try:
            return CommandResult(self._raw(COMMAND_RESULT))
        except ValueError:
            return CommandResult.DISMISS

    @property
    def page_size(self) -> int:
        """Rows per page; positive, 50 when unset or invalid."""
        return parse_int(self._raw(PAGE_SIZE), DEFAULT_PAGE_SIZE, minimum=1)

    @property
    def search_delay(self) -> int:
        """Debounce delay in milliseconds; non-negative, 200 when unset or invalid."""
        return parse_int(self._raw(SEARCH_DELAY), DEFAULT_SEARCH_DELAY_MS, minimum=0)

    # ==================== Writing ====================

    def as_dict(self) -> dict[str, Any]:
        """Effective (validated) value of every setting."""
        return {
            USE_STRICT_SEARCH: self.use_strict_search,
            SHOW_DETAILS: self.show_details,
            PREFERRED_EDITION: self.preferred_edition.value,
            TAG_TYPE: self.tag_type.value,
            COMMAND_RESULT: self.command_result.value,
            PAGE_SIZE: self.page_size,
            SEARCH_DELAY: self.search_delay,
        }

    def set_value(self, name: str, value: Any, flush: bool = True) -> None:
        """Validate and store a setting.

        Args:
            name: Setting name (e.g. "pageSize")
            value: New value; strings are converted for bool/int settings
            flush: Write to disk immediately (default True)

        Raises:
            SettingsValidationError: If the name is unknown or the value invalid
        """
        if name not in DEFAULTS:
            raise SettingsValidationError(f"Unknown setting: {name}")

        converted: Any
        if name in (USE_STRICT_SEARCH, SHOW_DETAILS):
            converted = parse_bool(value, default=None)  # type: ignore[arg-type]
            if converted is None:
                raise SettingsValidationError(f"{name} must be true or false, got {value!r}")
        elif name in (PAGE_SIZE, SEARCH_DELAY):
            minimum = 1 if name == PAGE_SIZE else 0
            converted = parse_int(value, default=-1, minimum=minimum)
            if converted < minimum:
                raise SettingsValidationError(f"{name} must be an integer >= {minimum}, got {value!r}")
        else:
            enum_type = {PREFERRED_EDITION: Edition, TAG_TYPE: TagType, COMMAND_RESULT: CommandResult}[name]
            try:
                converted = enum_type(value).value
            except ValueError:
                choices = ", ".join(member.value for member in enum_type)
                raise SettingsValidationError(f"{name} must be one of {choices}, got {value!r}") from None

        self.set(SECTION, name, converted, flush=flush)
        logger.info(f"Setting {name} = {converted!r}")


_settings: SettingsManager | None = None


def get_settings() -> SettingsManager:
    """Get the process-wide settings manager (created on first use)."""
    global _settings
    if _settings is None:
        _settings = SettingsManager()
    return _settings
