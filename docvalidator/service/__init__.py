"""Tool-protocol adapter for docvalidator."""

from .server import ProtocolError, ToolServer, run_stdio
from .tools import TOOLS, ToolSpec

__all__ = ["ProtocolError", "TOOLS", "ToolServer", "ToolSpec", "run_stdio"]
