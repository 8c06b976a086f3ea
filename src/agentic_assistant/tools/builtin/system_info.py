"""System information tool."""

import getpass
import os
import platform
import shutil
import socket
from typing import Any

from agentic_assistant.core.types import RiskLevel, ToolResult
from agentic_assistant.tools.base import Tool
from agentic_assistant.utils.logging import get_logger


logger = get_logger(__name__)

_GIB = 1024 ** 3


def _physical_memory_gb() -> str:
    try:
        pages = os.sysconf("SC_PHYS_PAGES")
        page_size = os.sysconf("SC_PAGE_SIZE")
    except (AttributeError, OSError, ValueError):
        return "N/A"
    return f"{pages * page_size / _GIB:.1f}"


def _disk_usage_gb(path: str = "/") -> tuple[str, str]:
    try:
        usage = shutil.disk_usage(path)
    except OSError:
        return "N/A", "N/A"
    return f"{usage.total / _GIB:.1f}", f"{usage.free / _GIB:.1f}"


def _username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


class SystemInfoTool(Tool):
    """
    Returns operating system, host and hardware information.

    Use this tool when users ask:
    - "What OS am I on?"
    - "How much disk space is left?"
    """

    name = "system_info"
    description = (
        "Returns system information including OS version, hostname, "
        "username, disk space, and memory"
    )
    input_schema = {"type": "object", "properties": {}}
    risk_level = RiskLevel.SAFE

    async def execute(self, tool_use_id: str, arguments: dict[str, Any]) -> ToolResult:
        disk_total, disk_free = _disk_usage_gb()
        lines = [
            f"OS Version: {platform.system()} {platform.release()} ({platform.platform()})",
            f"Hostname: {socket.gethostname()}",
            f"User: {_username()}",
            f"Disk Total: {disk_total} GB",
            f"Disk Free: {disk_free} GB",
            f"RAM: {_physical_memory_gb()} GB",
        ]
        logger.debug("system_info executed", tool_use_id=tool_use_id)
        return self.success(tool_use_id, "\n".join(lines))
