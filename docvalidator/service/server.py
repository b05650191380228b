"""Line-delimited JSON-RPC server exposing the validation tools."""

from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import Any, BinaryIO, Dict, Optional

from pydantic import ValidationError

from .. import __version__
from ..aggregator import Aggregator
from ..config import ConfigError
from ..logging import configure_logging, get_logger
from .tools import TOOLS, CheckArguments, ValidateArguments

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
RUN_FAILED = -32000


class ProtocolError(Exception):
    """Raised for requests that must be answered with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class ToolServer:
    """Dispatches JSON-RPC messages to the validation tools."""

    def __init__(self, aggregator: Aggregator | None = None) -> None:
        self.aggregator = aggregator or Aggregator()
        self.logger = get_logger("service")

    async def handle_line(self, line: bytes | str) -> Optional[Dict[str, Any]]:
        """Decode one request line and return the response, or ``None`` for notifications."""
        try:
            message = json.loads(line)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            return _error_response(None, ProtocolError(PARSE_ERROR, f"Parse error: {exc}"))
        return await self.handle_message(message)

    async def handle_message(self, message: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(message, dict):
            return _error_response(None, ProtocolError(INVALID_REQUEST, "Request must be a JSON object"))

        request_id = message.get("id")
        is_notification = "id" not in message
        method = message.get("method")
        if message.get("jsonrpc") != "2.0" or not isinstance(method, str):
            if is_notification:
                return None
            return _error_response(request_id, ProtocolError(INVALID_REQUEST, "Invalid JSON-RPC 2.0 request"))

        try:
            result = await self._dispatch(method, message.get("params"))
        except ProtocolError as exc:
            if exc.code == INTERNAL_ERROR:
                self.logger.error("Request %s failed: %s", method, exc.message)
            else:
                self.logger.debug("Request %s rejected: %s", method, exc.message)
            return None if is_notification else _error_response(request_id, exc)
        except Exception as exc:  # pragma: no cover - last-resort guard
            self.logger.exception("Unexpected error handling %s", method)
            error = ProtocolError(INTERNAL_ERROR, f"Internal error: {exc}")
            return None if is_notification else _error_response(request_id, error)

        if is_notification:
            return None
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    async def serve(self, stream_in: BinaryIO, stream_out: BinaryIO) -> None:
        """Answer requests read from ``stream_in`` one line at a time until EOF."""
        loop = asyncio.get_running_loop()
        self.logger.info("Tool server ready (docvalidator %s)", __version__)
        while True:
            line = await loop.run_in_executor(None, stream_in.readline)
            if not line:
                break
            if not line.strip():
                continue
            response = await self.handle_line(line)
            if response is None:
                continue
            stream_out.write(json.dumps(response).encode("utf-8") + b"\n")
            stream_out.flush()
        self.logger.info("Input closed; tool server stopping")

    # ------------------------------------------------------------------
    # Internals

    async def _dispatch(self, method: str, params: Any) -> Dict[str, Any]:
        if method == "initialize":
            return {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": "docvalidator", "version": __version__},
            }
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": [tool.describe() for tool in TOOLS.values()]}
        if method == "tools/call":
            return await self._call_tool(params)
        raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {method}")

    async def _call_tool(self, params: Any) -> Dict[str, Any]:
        if not isinstance(params, dict):
            raise ProtocolError(INVALID_PARAMS, "tools/call params must be an object")
        name = params.get("name")
        if not isinstance(name, str) or name not in TOOLS:
            raise ProtocolError(INVALID_PARAMS, f"Unknown tool: {name}")
        arguments = params.get("arguments", {})
        if arguments is None:
            arguments = {}
        try:
            parsed = TOOLS[name].arguments.model_validate(arguments)
        except ValidationError as exc:
            raise ProtocolError(
                INVALID_PARAMS,
                f"Invalid arguments for {name}",
                data=json.loads(exc.json(include_url=False)),
            ) from exc

        self.logger.info("Calling tool %s", name)
        try:
            if isinstance(parsed, ValidateArguments):
                return await self._validate(parsed)
            if isinstance(parsed, CheckArguments):
                return self._check(parsed)
            raise ProtocolError(INTERNAL_ERROR, f"No handler for tool: {name}")
        except (OSError, ConfigError, ValueError) as exc:
            raise ProtocolError(RUN_FAILED, f"Validation failed: {exc}") from exc
        except ProtocolError:
            raise
        except Exception as exc:
            self.logger.exception("Tool %s raised", name)
            raise ProtocolError(INTERNAL_ERROR, f"Internal error: {exc}") from exc

    async def _validate(self, arguments: ValidateArguments) -> Dict[str, Any]:
        options = arguments.options.to_options()
        report = await self.aggregator.run(arguments.path, options)
        return _content(report.to_dict(verbose=options.verbose), report.summary_line())

    def _check(self, arguments: CheckArguments) -> Dict[str, Any]:
        check = self.aggregator.documentation_exists(arguments.path)
        return _content(check.to_dict(), check.message)


def _content(payload: Dict[str, Any], summary: str) -> Dict[str, Any]:
    return {
        "content": [
            {"type": "json", "json": payload},
            {"type": "text", "text": summary},
        ]
    }


def _error_response(request_id: Any, error: ProtocolError) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": error.to_dict()}


def run_stdio(*, verbose: bool = False) -> None:
    """Serve tools over stdin/stdout until the input stream closes."""
    debug = verbose or os.environ.get("MCP_DEBUG", "").strip().lower() in {"1", "true", "yes"}
    configure_logging(verbose=debug)
    asyncio.run(ToolServer().serve(sys.stdin.buffer, sys.stdout.buffer))


__all__ = ["ProtocolError", "ToolServer", "run_stdio"]
