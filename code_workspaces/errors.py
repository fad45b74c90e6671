"""Standardized results for user-facing actions.

Open/copy/reload actions never raise to the caller; they return an
ActionResult whose message is shown as a transient notification.

Usage:
    from code_workspaces.errors import action_error, action_success, ErrorCodes

    return action_success("Copied path: /home/me/project", result=CommandResult.KEEP_OPEN)
    return action_error("Failed to copy path.", error=str(e), code=ErrorCodes.CLIPBOARD_UNAVAILABLE)
"""

from dataclasses import dataclass

from .models import CommandResult


class ErrorCodes:
    """Standard error codes for action results."""

    NOT_FOUND = "NOT_FOUND"
    LAUNCH_FAILED = "LAUNCH_FAILED"
    CLIPBOARD_UNAVAILABLE = "CLIPBOARD_UNAVAILABLE"


@dataclass
class ActionResult:
    """Outcome of an action.

    Attributes:
        success: Whether the action succeeded
        message: Notification text
        error: Error details if failed
        code: Error code for programmatic handling
        result: What the caller should do next (dismiss, go back, keep open)
    """

    success: bool
    message: str
    error: str | None = None
    code: str | None = None
    result: CommandResult = CommandResult.KEEP_OPEN

    def to_string(self) -> str:
        """Format for a notification or terminal line."""
        prefix = "✅" if self.success else "❌"
        parts = [f"{prefix} {self.message}"]
        if self.error:
            parts.append(f"\nError: {self.error}")
        if self.code:
            parts.append(f" [{self.code}]")
        return "".join(parts)


def action_success(message: str, result: CommandResult = CommandResult.KEEP_OPEN) -> ActionResult:
    return ActionResult(success=True, message=message, result=result)


def action_error(
    message: str,
    error: str | None = None,
    code: str | None = None,
    result: CommandResult = CommandResult.KEEP_OPEN,
) -> ActionResult:
    """Create a failed result.

    Failures keep the list open by default so the user can retry.
    """
    return ActionResult(success=False, message=message, error=error, code=code, result=result)
