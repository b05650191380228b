"""Tests for the JSON-RPC tool server."""

from __future__ import annotations

import asyncio
import io
import json
from typing import Any, Dict, Optional

from docvalidator.aggregator import Aggregator
from docvalidator.service import TOOLS, ToolServer
from docvalidator.service.server import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    RUN_FAILED,
)
from tests._fixtures.docs_builder import DocsBuilder


def _server(docs_builder: DocsBuilder) -> ToolServer:
    return ToolServer(Aggregator(history_factory=lambda: docs_builder.history({})))


def _request(server: ToolServer, method: str, params: Any = None, request_id: int = 1) -> Optional[Dict[str, Any]]:
    message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return asyncio.run(server.handle_message(message))


def _call(server: ToolServer, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    response = _request(server, "tools/call", {"name": name, "arguments": arguments})
    assert response is not None
    return response


def test_initialize_reports_server_info(docs_builder: DocsBuilder) -> None:
    response = _request(_server(docs_builder), "initialize", {"protocolVersion": "2024-11-05"})

    assert response is not None
    assert response["id"] == 1
    assert response["result"]["serverInfo"]["name"] == "docvalidator"
    assert "tools" in response["result"]["capabilities"]


def test_ping_returns_empty_result(docs_builder: DocsBuilder) -> None:
    assert _request(_server(docs_builder), "ping") == {"jsonrpc": "2.0", "id": 1, "result": {}}


def test_tools_list_publishes_schemas(docs_builder: DocsBuilder) -> None:
    response = _request(_server(docs_builder), "tools/list")

    assert response is not None
    tools = {tool["name"]: tool for tool in response["result"]["tools"]}
    assert set(tools) == set(TOOLS) == {"documentation_validate", "documentation_check"}
    validate_schema = tools["documentation_validate"]["inputSchema"]
    assert validate_schema["required"] == ["path"]
    options_schema = validate_schema["$defs"]["ValidationOptionsModel"]
    assert "minCoveragePercentage" in options_schema["properties"]
    assert options_schema["additionalProperties"] is False


def test_notifications_get_no_response(docs_builder: DocsBuilder) -> None:
    server = _server(docs_builder)

    assert asyncio.run(server.handle_message({"jsonrpc": "2.0", "method": "notifications/initialized"})) is None
    assert asyncio.run(server.handle_message({"jsonrpc": "2.0", "method": "unknown/thing"})) is None


def test_parse_error_and_invalid_request(docs_builder: DocsBuilder) -> None:
    server = _server(docs_builder)

    parse_error = asyncio.run(server.handle_line(b"{not json"))
    invalid = asyncio.run(server.handle_message({"jsonrpc": "1.0", "id": 7, "method": "ping"}))
    not_object = asyncio.run(server.handle_line(b"[1, 2]"))

    assert parse_error is not None and parse_error["error"]["code"] == PARSE_ERROR
    assert parse_error["id"] is None
    assert invalid is not None and invalid["error"]["code"] == INVALID_REQUEST
    assert invalid["id"] == 7
    assert not_object is not None and not_object["error"]["code"] == INVALID_REQUEST


def test_unknown_method_and_tool(docs_builder: DocsBuilder) -> None:
    server = _server(docs_builder)

    method = _request(server, "resources/list")
    tool = _call(server, "documentation_publish", {"path": "."})

    assert method is not None and method["error"]["code"] == METHOD_NOT_FOUND
    assert tool["error"]["code"] == INVALID_PARAMS
    assert "documentation_publish" in tool["error"]["message"]


def test_non_string_tool_names_are_invalid_params(docs_builder: DocsBuilder) -> None:
    server = _server(docs_builder)

    listed = _request(server, "tools/call", {"name": ["documentation_check"], "arguments": {}})
    numeric = _request(server, "tools/call", {"name": 3, "arguments": {}})
    missing = _request(server, "tools/call", {"arguments": {}})
    not_object = _request(server, "tools/call", ["documentation_check"])

    for response in (listed, numeric, missing, not_object):
        assert response is not None
        assert "result" not in response
        assert response["error"]["code"] == INVALID_PARAMS


def test_malformed_option_is_rejected_before_running(docs_builder: DocsBuilder) -> None:
    response = _call(
        _server(docs_builder),
        "documentation_validate",
        {"path": str(docs_builder.path()), "options": {"verbose": "yes"}},
    )

    assert "result" not in response
    assert response["error"]["code"] == INVALID_PARAMS
    assert response["error"]["data"][0]["loc"] == ["options", "verbose"]
    assert not docs_builder.path("docs").exists()


def test_unknown_options_and_validators_are_rejected(docs_builder: DocsBuilder) -> None:
    server = _server(docs_builder)
    path = str(docs_builder.path())

    extra = _call(server, "documentation_validate", {"path": path, "options": {"colour": True}})
    unknown = _call(server, "documentation_validate", {"path": path, "options": {"validators": ["spelling"]}})
    missing = _call(server, "documentation_check", {})

    assert extra["error"]["code"] == INVALID_PARAMS
    assert unknown["error"]["code"] == INVALID_PARAMS
    assert "spelling" in json.dumps(unknown["error"]["data"])
    assert missing["error"]["code"] == INVALID_PARAMS


def test_missing_project_is_a_run_failure(docs_builder: DocsBuilder) -> None:
    response = _call(
        _server(docs_builder),
        "documentation_validate",
        {"path": str(docs_builder.path("missing"))},
    )

    assert response["error"]["code"] == RUN_FAILED
    assert "not found" in response["error"]["message"]


def test_docs_dir_escaping_project_is_a_run_failure(docs_builder: DocsBuilder) -> None:
    response = _call(
        _server(docs_builder),
        "documentation_validate",
        {"path": str(docs_builder.path()), "options": {"docsDir": "../../elsewhere"}},
    )

    assert "result" not in response
    assert response["error"]["code"] == RUN_FAILED
    assert "outside the project" in response["error"]["message"]
    assert not (docs_builder.path().parent.parent / "elsewhere").exists()


def test_validate_returns_json_and_text_content(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"docs/architecture.md": "# Architecture\n\nHow the pieces fit together.\n"})

    response = _call(
        _server(docs_builder),
        "documentation_validate",
        {
            "path": str(docs_builder.path()),
            "options": {"validators": ["coverage", "consistency"], "minCoveragePercentage": 5},
        },
    )

    json_part, text_part = response["result"]["content"]
    assert json_part["type"] == "json"
    assert text_part["type"] == "text"
    report = json_part["json"]
    assert list(report["validators"]) == ["coverage", "consistency"]
    assert report["validators"]["coverage"]["stats"]["minimumPercentage"] == 5
    assert "details" not in report["validators"]["coverage"]
    assert report["pass"] is True
    assert text_part["text"] == "Documentation validation: 2/2 validators passed (PASS)."


def test_verbose_validate_includes_details(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"docs/architecture.md": "# Architecture\n"})

    response = _call(
        _server(docs_builder),
        "documentation_validate",
        {"path": str(docs_builder.path()), "options": {"validators": ["coverage"], "verbose": True}},
    )

    report = response["result"]["content"][0]["json"]
    assert "missingDocumentation" in report["validators"]["coverage"]["details"]


def test_check_tool_reports_existence(docs_builder: DocsBuilder) -> None:
    docs_builder.write({"docs/index.md": "# Index\n"})

    response = _call(_server(docs_builder), "documentation_check", {"path": str(docs_builder.path())})

    json_part, text_part = response["result"]["content"]
    assert json_part["json"]["exists"] is True
    assert json_part["json"]["documentCount"] == 1
    assert text_part["text"].startswith("Found 1 documentation files")


def test_serve_answers_each_line(docs_builder: DocsBuilder) -> None:
    requests = [
        {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}},
        {"jsonrpc": "2.0", "method": "notifications/initialized"},
        {"jsonrpc": "2.0", "id": 2, "method": "ping"},
    ]
    payload = b"\n".join(json.dumps(item).encode("utf-8") for item in requests)
    stream_in = io.BytesIO(payload + b"\n\n{oops\n")
    stream_out = io.BytesIO()

    asyncio.run(_server(docs_builder).serve(stream_in, stream_out))

    responses = [json.loads(line) for line in stream_out.getvalue().splitlines()]
    assert [response.get("id") for response in responses] == [1, 2, None]
    assert responses[2]["error"]["code"] == PARSE_ERROR
