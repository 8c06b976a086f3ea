"""Application class with startup/shutdown lifecycle."""

import asyncio
import signal

from agentic_assistant.config.settings import Settings, get_settings
from agentic_assistant.core.orchestrator import ConfirmationHandler, Orchestrator
from agentic_assistant.core.policy import PolicyEngine
from agentic_assistant.core.session_log import (
    FileSessionLogger,
    NullSessionLogger,
    SessionLogger,
)
from agentic_assistant.core.types import OrchestratorResult
from agentic_assistant.tools.builtin import register_builtin_tools
from agentic_assistant.tools.registry import ToolRegistry
from agentic_assistant.utils.http import HTTPTransport, HttpxTransport
from agentic_assistant.utils.logging import get_logger, setup_logging
from agentic_assistant.utils.providers.anthropic import AnthropicProvider
from agentic_assistant.utils.providers.base import BaseModelProvider


logger = get_logger(__name__)


class Application:
    """
    Wires the control plane together from settings.

    Handles:
    - Logging configuration
    - Building transport, provider, registry, policy and orchestrator
    - Aborting the in-flight request and closing resources on shutdown

    Usage:
        app = Application(confirmation_handler=ask_user)
        await app.startup()
        result = await app.process("What OS am I on?")
        await app.shutdown()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        confirmation_handler: ConfirmationHandler | None = None,
        model_provider: BaseModelProvider | None = None,
        transport: HTTPTransport | None = None,
    ):
        """
        Initialize application.

        Args:
            settings: Settings to use (defaults to the cached environment settings)
            confirmation_handler: Asked before risky tool calls
            model_provider: Provider override; built from settings when omitted
            transport: HTTP transport override for the Anthropic provider
        """
        self.settings = settings or get_settings()
        self._confirmation_handler = confirmation_handler
        self._model_provider_override = model_provider
        self._transport_override = transport

        self.transport: HTTPTransport | None = None
        self.model_provider: BaseModelProvider | None = None
        self.tool_registry: ToolRegistry | None = None
        self.policy_engine: PolicyEngine | None = None
        self.session_logger: SessionLogger | None = None
        self.orchestrator: Orchestrator | None = None
        self._is_shutting_down = False

    async def startup(self) -> None:
        """Initialize resources on startup."""
        settings = self.settings

        # Configure logging
        setup_logging(settings.log_level, json_output=settings.log_json)

        logger.info("Starting application...")

        if self._model_provider_override is not None:
            self.model_provider = self._model_provider_override
        else:
            self.transport = self._transport_override or HttpxTransport(
                timeout=settings.http_timeout_seconds,
                max_retries=settings.http_max_retries,
                retry_backoff=settings.http_retry_backoff_seconds,
            )
            self.model_provider = AnthropicProvider(
                transport=self.transport,
                api_key=settings.anthropic_api_key,
                model=settings.default_model,
                max_tokens=settings.max_tokens,
                api_version=settings.anthropic_version,
                base_url=settings.anthropic_base_url,
            )
            if not settings.anthropic_api_key:
                logger.warning("ANTHROPIC_API_KEY is not set; model requests will be rejected")

        self.tool_registry = ToolRegistry()
        register_builtin_tools(self.tool_registry)

        self.policy_engine = PolicyEngine(autonomy_level=settings.autonomy_level)

        self.session_logger = NullSessionLogger()
        if settings.session_log_dir:
            try:
                self.session_logger = FileSessionLogger(settings.session_log_dir)
            except OSError as e:
                logger.warning("Session log unavailable", error=str(e))

        self.orchestrator = Orchestrator(
            model_provider=self.model_provider,
            tool_registry=self.tool_registry,
            policy_engine=self.policy_engine,
            system_prompt=settings.system_prompt,
            max_rounds=settings.max_rounds,
            timeout=settings.turn_timeout_seconds,
            confirmation_handler=self._confirmation_handler,
            session_logger=self.session_logger,
        )

        logger.info(
            "Application started",
            provider=self.model_provider.provider_name,
            tools=self.tool_registry.list_tools(),
            autonomy=self.policy_engine.autonomy_level.name,
        )

    async def process(self, user_message: str) -> OrchestratorResult:
        """Run one request through the orchestrator."""
        if self.orchestrator is None:
            raise RuntimeError("Application.startup() has not been called")
        return await self.orchestrator.process(user_message)

    async def shutdown(self) -> None:
        """
        Shutdown.

        1. Abort the in-flight request, if any
        2. Close the HTTP transport
        3. Close the session log
        """
        logger.info("Shutdown initiated...")
        self._is_shutting_down = True

        if self.orchestrator is not None:
            self.orchestrator.abort()

        if isinstance(self.transport, HttpxTransport):
            await self.transport.close()

        if isinstance(self.session_logger, FileSessionLogger):
            self.session_logger.close()

        logger.info("Shutdown complete")

    @property
    def is_shutting_down(self) -> bool:
        """Check if application is shutting down."""
        return self._is_shutting_down


def setup_signal_handlers(app: Application) -> None:
    """
    Setup signal handlers for graceful shutdown.

    Args:
        app: Application instance
    """

    async def handle_signal(sig: signal.Signals) -> None:
        logger.info("Received signal", signal=sig.name)
        await app.shutdown()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.create_task(handle_signal(s)),
            )
    except NotImplementedError:
        # Windows doesn't support add_signal_handler
        logger.warning("Signal handlers not supported on this platform")
