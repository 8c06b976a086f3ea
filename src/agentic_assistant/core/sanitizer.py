"""Input sanitization for tool call arguments.

Every string leaf of a call's input is checked before policy evaluation.
Any violation forces a deny decision regardless of risk or autonomy.
"""

from typing import Any

from agentic_assistant.core.types import (
    SanitizationViolation,
    ToolUse,
    ViolationKind,
)


class InputSanitizer:
    """Scans tool call input for unsafe strings."""

    LENGTH_LIMIT = 10_000

    SYSTEM_PATH_PREFIXES = (
        "/system/",
        "/library/",
        "/usr/",
        "/bin/",
        "/sbin/",
        "/private/",
    )

    # Tab, line feed and carriage return are allowed
    _ALLOWED_CONTROL = {9, 10, 13}

    def check(self, call: ToolUse) -> list[SanitizationViolation]:
        """Return every violation in the call's input; empty when clean."""
        violations: list[SanitizationViolation] = []
        for key, value in call.input.items():
            self._check_value(value, key, violations)
        return violations

    def is_clean(self, call: ToolUse) -> bool:
        return not self.check(call)

    def _check_value(
        self,
        value: Any,
        field: str,
        violations: list[SanitizationViolation],
    ) -> None:
        if isinstance(value, str):
            violations.extend(self._check_string(value, field))
        elif isinstance(value, dict):
            for key, nested in value.items():
                self._check_value(nested, f"{field}.{key}", violations)
        elif isinstance(value, (list, tuple)):
            for index, nested in enumerate(value):
                self._check_value(nested, f"{field}[{index}]", violations)

    def _check_string(self, value: str, field: str) -> list[SanitizationViolation]:
        violations = []

        if len(value) > self.LENGTH_LIMIT:
            violations.append(
                SanitizationViolation(
                    kind=ViolationKind.LENGTH_EXCEEDED,
                    field=field,
                    detail=f"{len(value)} > {self.LENGTH_LIMIT} characters",
                )
            )

        if any(ord(ch) < 32 and ord(ch) not in self._ALLOWED_CONTROL for ch in value):
            violations.append(
                SanitizationViolation(kind=ViolationKind.CONTROL_CHARACTERS, field=field)
            )

        if "../" in value or "..\\" in value:
            violations.append(
                SanitizationViolation(
                    kind=ViolationKind.PATH_TRAVERSAL,
                    field=field,
                    detail=value[:200],
                )
            )

        if value.lower().startswith(self.SYSTEM_PATH_PREFIXES):
            violations.append(
                SanitizationViolation(
                    kind=ViolationKind.SYSTEM_PATH,
                    field=field,
                    detail=value[:200],
                )
            )

        return violations
