"""Human-readable session traces.

The orchestrator reports every step of a request to a ``SessionLogger``.
``NullSessionLogger`` discards everything; ``FileSessionLogger`` writes a
plain-text audit trail, one file per session.
"""

import threading
from datetime import datetime
from pathlib import Path

from agentic_assistant.core.types import PolicyDecision, RiskLevel, TurnMetrics
from agentic_assistant.utils.logging import get_logger


logger = get_logger(__name__)

OUTPUT_PREVIEW_CHARS = 600

_SEPARATOR = "=" * 80
_THIN_LINE = "-" * 80

_DECISION_LABELS = {
    PolicyDecision.ALLOW: "allow",
    PolicyDecision.REQUIRE_CONFIRMATION: "require confirmation",
    PolicyDecision.DENY: "deny",
}


class SessionLogger:
    """Session trace sink. Every hook is a no-op unless overridden."""

    def log_user_message(self, text: str) -> None:
        pass

    def log_thinking_round(self, round_number: int, message_count: int, tool_count: int) -> None:
        pass

    def log_tool_call(
        self,
        name: str,
        input_json: str,
        risk: RiskLevel,
        decision: PolicyDecision,
    ) -> None:
        pass

    def log_tool_result(self, name: str, is_error: bool, elapsed: float, output: str) -> None:
        pass

    def log_tool_denied(self, name: str) -> None:
        pass

    def log_tool_rejected(self, name: str) -> None:
        pass

    def log_assistant_text(self, text: str) -> None:
        pass

    def log_metrics(self, metrics: TurnMetrics) -> None:
        pass

    def log_error(self, message: str) -> None:
        pass


class NullSessionLogger(SessionLogger):
    """Discards all session events."""


class FileSessionLogger(SessionLogger):
    """
    Writes a session trace to ``<directory>/session-YYYY-MM-DD-HHMMSS.txt``.

    Safe to call from several threads; each entry is written under a lock
    and flushed immediately. Writes are synchronous and happen on the
    caller's thread, which is the event loop when driven by the
    orchestrator. Entries are a few hundred bytes (tool output is cut at
    ``OUTPUT_PREVIEW_CHARS``), so the loop is never held for long.
    """

    def __init__(self, directory: str | Path):
        log_dir = Path(directory).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)

        started = datetime.now()
        self.file_path = log_dir / f"session-{started:%Y-%m-%d-%H%M%S}.txt"
        self._lock = threading.Lock()
        self._file = self.file_path.open("a", encoding="utf-8")

        self._write(
            f"{_SEPARATOR}\n"
            "Assistant Session Log\n"
            f"Started:  {started:%Y-%m-%d %H:%M:%S}\n"
            f"Log file: {self.file_path}\n"
            f"{_SEPARATOR}\n\n"
        )
        logger.info("Session log started", path=str(self.file_path))

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()

    def log_user_message(self, text: str) -> None:
        self._write(f"\n[{_timestamp()}] USER\n{_THIN_LINE}\n{text}\n\n")

    def log_thinking_round(self, round_number: int, message_count: int, tool_count: int) -> None:
        self._write(
            f"\n[{_timestamp()}] THINKING - Round {round_number} "
            f"({message_count} messages, {tool_count} tools available)\n{_THIN_LINE}\n"
        )

    def log_tool_call(
        self,
        name: str,
        input_json: str,
        risk: RiskLevel,
        decision: PolicyDecision,
    ) -> None:
        self._write(
            f"\n  [{_timestamp()}] TOOL CALL - {name}\n"
            f"    Input:  {input_json}\n"
            f"    Risk:   {risk.label}\n"
            f"    Policy: {_DECISION_LABELS[decision]}\n"
        )

    def log_tool_result(self, name: str, is_error: bool, elapsed: float, output: str) -> None:
        status = "ERROR" if is_error else "OK"
        if len(output) > OUTPUT_PREVIEW_CHARS:
            output = output[:OUTPUT_PREVIEW_CHARS] + "\n    ... (truncated)"
        self._write(
            f"\n  [{_timestamp()}] TOOL RESULT - {name} {status} ({elapsed:.3f}s)\n"
            f"    Output: {output}\n"
        )

    def log_tool_denied(self, name: str) -> None:
        self._write(f"\n  [{_timestamp()}] TOOL DENIED - {name} (blocked by safety policy)\n")

    def log_tool_rejected(self, name: str) -> None:
        self._write(f"\n  [{_timestamp()}] TOOL REJECTED - {name} (declined by user)\n")

    def log_assistant_text(self, text: str) -> None:
        self._write(f"\n[{_timestamp()}] ASSISTANT RESPONSE\n{_THIN_LINE}\n{text}\n\n")

    def log_metrics(self, metrics: TurnMetrics) -> None:
        tools = ", ".join(metrics.tools_used) if metrics.tools_used else "(none)"
        self._write(
            f"\n[{_timestamp()}] METRICS\n"
            f"  Rounds:     {metrics.round_count}\n"
            f"  Tools used: {tools}\n"
            f"  Errors:     {metrics.errors_encountered}\n"
            f"  Tokens:     {metrics.input_tokens} in / {metrics.output_tokens} out\n"
            f"  Elapsed:    {metrics.elapsed_time:.2f}s\n"
            f"{_SEPARATOR}\n\n"
        )

    def log_error(self, message: str) -> None:
        self._write(f"\n[{_timestamp()}] ERROR - {message}\n")

    def _write(self, text: str) -> None:
        with self._lock:
            if self._file.closed:
                return
            self._file.write(text)
            self._file.flush()


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")
