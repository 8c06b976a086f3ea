"""Context-lock verification shared by input-injecting tools.

Tools that type or click into the frontmost application first confirm that
the application the assistant last inspected is still the one in front.
The orchestrator only stores the lock; enforcement happens here.
"""

from typing import Callable

from agentic_assistant.core.types import ContextLock


LockProvider = Callable[[], ContextLock | None]
AppProvider = Callable[[], tuple[str, int] | None]


class ContextLockChecker:
    """
    Compare the recorded context lock against the frontmost application.

    Usage:
        checker = ContextLockChecker(
            lock_provider=lambda: orchestrator.context_lock,
            app_provider=frontmost_app,
        )
        if (problem := checker.verify()) is not None:
            return Tool.error(tool_use_id, problem)
    """

    def __init__(self, lock_provider: LockProvider, app_provider: AppProvider):
        """
        Args:
            lock_provider: Returns the current lock, or None when unset
            app_provider: Returns (bundle_id, pid) of the frontmost app, or None
        """
        self._lock_provider = lock_provider
        self._app_provider = app_provider

    def verify(self) -> str | None:
        """Return None when the lock matches, otherwise a message for the model."""
        lock = self._lock_provider()
        if lock is None:
            return "No context lock set. Call get_ui_state first to establish context."

        app = self._app_provider()
        if app is None:
            return "No frontmost application detected."

        bundle_id, pid = app
        if bundle_id != lock.bundle_id:
            return (
                f"Frontmost app changed from '{lock.bundle_id}' to '{bundle_id}'. "
                "Call get_ui_state to re-establish context."
            )
        if pid != lock.pid:
            return "Frontmost app PID changed. Call get_ui_state to re-establish context."
        return None
