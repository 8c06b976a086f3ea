"""Risk-based admission control for tool calls.

Two stages run before any side-effecting tool executes:

1. Input sanitization. Any violation denies the call outright.
2. Decision matrix keyed by (risk level, autonomy level)::

       risk \\ autonomy   ASK_ALL   SMART_DEFAULT   FULL_AUTO
       safe              allow     allow           allow
       caution           confirm   allow           allow
       dangerous         confirm   confirm         allow
       destructive       confirm   confirm         confirm

   Destructive calls always need confirmation, checked before the table.
"""

import threading

from agentic_assistant.core.sanitizer import InputSanitizer
from agentic_assistant.core.types import (
    AutonomyLevel,
    PolicyDecision,
    RiskLevel,
    ToolUse,
)
from agentic_assistant.utils.logging import get_logger


logger = get_logger(__name__)

_ALLOW = PolicyDecision.ALLOW
_CONFIRM = PolicyDecision.REQUIRE_CONFIRMATION

DECISION_MATRIX: dict[tuple[RiskLevel, AutonomyLevel], PolicyDecision] = {
    (RiskLevel.SAFE, AutonomyLevel.ASK_ALL): _ALLOW,
    (RiskLevel.SAFE, AutonomyLevel.SMART_DEFAULT): _ALLOW,
    (RiskLevel.SAFE, AutonomyLevel.FULL_AUTO): _ALLOW,
    (RiskLevel.CAUTION, AutonomyLevel.ASK_ALL): _CONFIRM,
    (RiskLevel.CAUTION, AutonomyLevel.SMART_DEFAULT): _ALLOW,
    (RiskLevel.CAUTION, AutonomyLevel.FULL_AUTO): _ALLOW,
    (RiskLevel.DANGEROUS, AutonomyLevel.ASK_ALL): _CONFIRM,
    (RiskLevel.DANGEROUS, AutonomyLevel.SMART_DEFAULT): _CONFIRM,
    (RiskLevel.DANGEROUS, AutonomyLevel.FULL_AUTO): _ALLOW,
}


class PolicyEngine:
    """
    Decides allow / confirm / deny for each tool call.

    The autonomy level is process-wide mutable state; it can be swapped at
    any time without rebuilding the engine or the orchestrator using it.
    """

    def __init__(
        self,
        autonomy_level: AutonomyLevel = AutonomyLevel.SMART_DEFAULT,
        sanitizer: InputSanitizer | None = None,
    ):
        self._lock = threading.Lock()
        self._autonomy_level = autonomy_level
        self._sanitizer = sanitizer or InputSanitizer()

    @property
    def autonomy_level(self) -> AutonomyLevel:
        with self._lock:
            return self._autonomy_level

    def set_autonomy_level(self, level: AutonomyLevel) -> None:
        with self._lock:
            previous = self._autonomy_level
            self._autonomy_level = AutonomyLevel(level)
        logger.info("Autonomy level changed", previous=previous.name, current=AutonomyLevel(level).name)

    def evaluate(self, call: ToolUse, risk_level: RiskLevel) -> PolicyDecision:
        """Evaluate a tool call against sanitization and the decision matrix."""
        violations = self._sanitizer.check(call)
        if violations:
            logger.warning(
                "Tool call denied by sanitizer",
                tool=call.name,
                violations=[f"{v.kind.value}@{v.field}" for v in violations],
            )
            return PolicyDecision.DENY

        autonomy = self.autonomy_level
        decision = self.decide(risk_level, autonomy)
        logger.info(
            "Policy decision",
            tool=call.name,
            risk=risk_level.label,
            autonomy=autonomy.name,
            decision=decision.value,
        )
        return decision

    @staticmethod
    def decide(risk_level: RiskLevel, autonomy_level: AutonomyLevel) -> PolicyDecision:
        """Pure decision-matrix lookup, without sanitization."""
        if risk_level == RiskLevel.DESTRUCTIVE:
            return PolicyDecision.REQUIRE_CONFIRMATION
        return DECISION_MATRIX[(RiskLevel(risk_level), AutonomyLevel(autonomy_level))]
