"""Tests for session trace loggers."""

from agentic_assistant.core.session_log import (
    OUTPUT_PREVIEW_CHARS,
    FileSessionLogger,
    NullSessionLogger,
)
from agentic_assistant.core.types import PolicyDecision, RiskLevel, TurnMetrics


def read_log(logger: FileSessionLogger) -> str:
    logger.close()
    return logger.file_path.read_text(encoding="utf-8")


class TestFileSessionLogger:
    """Tests for FileSessionLogger."""

    def test_creates_file_with_header(self, tmp_path):
        logger = FileSessionLogger(tmp_path / "logs")

        assert logger.file_path.parent == tmp_path / "logs"
        assert logger.file_path.name.startswith("session-")
        assert logger.file_path.suffix == ".txt"
        assert "Assistant Session Log" in read_log(logger)

    def test_records_a_turn(self, tmp_path):
        logger = FileSessionLogger(tmp_path)
        logger.log_user_message("What OS am I on?")
        logger.log_thinking_round(1, 1, 3)
        logger.log_tool_call("system_info", "{}", RiskLevel.SAFE, PolicyDecision.ALLOW)
        logger.log_tool_result("system_info", False, 0.0123, "OS Version: 14.5")
        logger.log_assistant_text("You're running macOS.")
        logger.log_metrics(
            TurnMetrics(
                round_count=2,
                elapsed_time=1.5,
                tools_used=["system_info"],
                input_tokens=20,
                output_tokens=10,
            )
        )

        text = read_log(logger)

        assert "USER\n" in text
        assert "What OS am I on?" in text
        assert "THINKING - Round 1 (1 messages, 3 tools available)" in text
        assert "TOOL CALL - system_info" in text
        assert "Risk:   safe" in text
        assert "Policy: allow" in text
        assert "TOOL RESULT - system_info OK (0.012s)" in text
        assert "ASSISTANT RESPONSE" in text
        assert "Rounds:     2" in text
        assert "Tools used: system_info" in text
        assert "Tokens:     20 in / 10 out" in text

    def test_denied_rejected_and_errors(self, tmp_path):
        logger = FileSessionLogger(tmp_path)
        logger.log_tool_denied("file_write")
        logger.log_tool_rejected("delete_file")
        logger.log_tool_result("explode", True, 0.5, "boom")
        logger.log_error("Request timed out after 5s")

        text = read_log(logger)

        assert "TOOL DENIED - file_write (blocked by safety policy)" in text
        assert "TOOL REJECTED - delete_file (declined by user)" in text
        assert "TOOL RESULT - explode ERROR" in text
        assert "ERROR - Request timed out after 5s" in text

    def test_long_output_truncated(self, tmp_path):
        logger = FileSessionLogger(tmp_path)
        logger.log_tool_result("dump", False, 0.1, "x" * (OUTPUT_PREVIEW_CHARS + 50))

        text = read_log(logger)

        assert "x" * OUTPUT_PREVIEW_CHARS + "\n    ... (truncated)" in text
        assert "x" * (OUTPUT_PREVIEW_CHARS + 1) not in text

    def test_writes_after_close_ignored(self, tmp_path):
        logger = FileSessionLogger(tmp_path)
        logger.close()
        logger.log_user_message("late")
        logger.close()

        assert "late" not in logger.file_path.read_text(encoding="utf-8")


def test_null_logger_accepts_everything():
    logger = NullSessionLogger()
    logger.log_user_message("hi")
    logger.log_tool_call("x", "{}", RiskLevel.DESTRUCTIVE, PolicyDecision.DENY)
    logger.log_error("nope")
