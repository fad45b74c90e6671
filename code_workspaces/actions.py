"""
Process, clipboard and notification actions.

- launch_editor(): start an editor executable on a workspace URI
- copy_to_clipboard(): wl-copy / xclip / pbcopy / clip, first one found
- notify(): notify-send (Linux) or osascript (macOS), log line otherwise

All helpers run subprocesses through asyncio and never raise for a missing
tool or a failed process; launch/copy report through ActionResult.
"""

import asyncio
import logging
import platform
import shutil
import sys

from .errors import ActionResult, ErrorCodes, action_error, action_success
from .models import CommandResult, WorkspaceKind

logger = logging.getLogger(__name__)

# Clipboard writers, tried in order
CLIPBOARD_COMMANDS: list[list[str]] = [
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["pbcopy"],
    ["clip"],
]


def build_open_arguments(executable: str, raw_path: str, kind: WorkspaceKind) -> list[str]:
    """Command line opening a workspace: folders via --folder-uri, files via --file-uri."""
    flag = "--folder-uri" if kind == WorkspaceKind.FOLDER else "--file-uri"
    return [executable, flag, raw_path]


async def launch_editor(
    executable: str,
    raw_path: str,
    kind: WorkspaceKind,
    result: CommandResult = CommandResult.DISMISS,
) -> ActionResult:
    """
    Start the editor on a workspace without waiting for it to exit.

    Args:
        executable: Editor executable path
        raw_path: Workspace URI exactly as stored by the editor
        kind: Folder or workspace file
        result: Post-open behavior reported back to the caller

    Returns:
        ActionResult (LAUNCH_FAILED if the process could not be started)
    """
    args = build_open_arguments(executable, raw_path, kind)
    try:
        await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
            start_new_session=sys.platform != "win32",
        )
    except OSError as e:
        logger.warning(f"Failed to launch {executable}: {e}")
        return action_error("Failed to open workspace.", error=str(e), code=ErrorCodes.LAUNCH_FAILED)

    logger.info(f"Opened {raw_path} with {executable}")
    return action_success(f"Opening {raw_path}", result=result)


async def copy_to_clipboard(text: str) -> bool:
    """Copy text with the first available clipboard tool.

    Returns:
        True if a tool accepted the text
    """
    for command in CLIPBOARD_COMMANDS:
        if shutil.which(command[0]) is None:
            continue
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await proc.communicate(text.encode("utf-8"))
        except OSError as e:
            logger.debug(f"Clipboard tool {command[0]} failed: {e}")
            continue
        if proc.returncode == 0:
            return True
        logger.debug(f"Clipboard tool {command[0]} exited with {proc.returncode}")

    return False


async def notify(title: str, message: str, success: bool = True) -> bool:
    """Show a transient desktop notification.

    Falls back to a log line when no notifier is available.
    """
    system = platform.system()
    try:
        if system == "Linux" and shutil.which("notify-send"):
            proc = await asyncio.create_subprocess_exec(
                "notify-send",
                "--icon",
                "dialog-information" if success else "dialog-error",
                "--app-name",
                "Code Workspaces",
                title,
                message,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await proc.wait()
            return proc.returncode == 0

        if system == "Darwin":
            escaped_title = title.replace('"', '\\"')
            escaped_message = message.replace('"', '\\"')
            proc = await asyncio.create_subprocess_exec(
                "osascript",
                "-e",
                f'display notification "{escaped_message}" with title "{escaped_title}"',
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await proc.wait()
            return proc.returncode == 0
    except OSError as e:
        logger.debug(f"Desktop notification failed: {e}")

    log = logger.info if success else logger.warning
    log(f"{title}: {message}")
    return False
