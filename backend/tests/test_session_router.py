"""
End-to-end tests for session routing over the streamable-HTTP endpoint.
"""
import json
from decimal import Decimal
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient
from mcp.types.version import LATEST_HANDSHAKE_VERSION

from actual_mcp.main import create_app
from tests.mcp_helpers import (
    ACCEPT_BOTH,
    INITIALIZE_REQUEST,
    MCP_PATH,
    initialize_session,
    rpc,
)

NO_VALID_SESSION = {"code": -32000, "message": "No valid session ID"}


def sse_messages(text: str) -> list:
    """JSON payloads of the data lines in an SSE body."""
    return [
        json.loads(line[len("data:"):].strip())
        for line in text.splitlines()
        if line.startswith("data:") and line[len("data:"):].strip()
    ]


def test_initialize_issues_session_and_acknowledges(client, sessions):
    response = client.post(MCP_PATH, json=INITIALIZE_REQUEST, headers=ACCEPT_BOTH)

    assert response.status_code == 200
    session_id = response.headers["mcp-session-id"]
    assert session_id in sessions

    body = response.json()
    assert body["id"] == 1
    result = body["result"]
    assert result["protocolVersion"] == "2025-03-26"
    assert result["serverInfo"]["name"] == "actual-mcp-server"
    assert result["serverInfo"]["version"] == "1.0.0"
    assert "tools" in result["capabilities"]
    assert "actual.accounts.list" in result["instructions"]


def test_initialize_requests_get_distinct_session_ids(client, sessions):
    ids = {initialize_session(client) for _ in range(5)}

    assert len(ids) == 5
    assert len(sessions) == 5


def test_unsupported_protocol_version_falls_back_to_latest(client):
    body = {**INITIALIZE_REQUEST, "params": {**INITIALIZE_REQUEST["params"], "protocolVersion": "1999-01-01"}}
    response = client.post(MCP_PATH, json=body, headers=ACCEPT_BOTH)

    assert response.json()["result"]["protocolVersion"] == LATEST_HANDSHAKE_VERSION


def test_unknown_protocol_version_header_is_rejected(client, sessions):
    session_id = initialize_session(client)

    response = client.post(
        MCP_PATH,
        json={"jsonrpc": "2.0", "id": 4, "method": "ping"},
        headers={**ACCEPT_BOTH, "mcp-session-id": session_id, "mcp-protocol-version": "1999-01-01"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32600
    assert session_id in sessions


def test_post_with_unknown_session_is_rejected_without_side_effects(client, sessions):
    response = rpc(client, "not-a-session", "tools/list", request_id=7)

    assert response.status_code == 400
    assert response.json() == {"jsonrpc": "2.0", "error": NO_VALID_SESSION, "id": 7}
    assert len(sessions) == 0


def test_get_with_unknown_session_returns_400(client):
    response = client.get(MCP_PATH, headers={"accept": "text/event-stream", "mcp-session-id": "unknown"})

    assert response.status_code == 400
    assert response.json() == {"jsonrpc": "2.0", "error": NO_VALID_SESSION, "id": None}


def test_get_without_session_header_returns_400(client):
    response = client.get(MCP_PATH, headers={"accept": "text/event-stream"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32000


def test_get_stream_requires_event_stream_accept(client):
    session_id = initialize_session(client)

    response = client.get(MCP_PATH, headers={"accept": "application/json", "mcp-session-id": session_id})

    assert response.status_code == 406


def test_delete_terminates_session(client, sessions):
    session_id = initialize_session(client)
    transport = sessions.get(session_id)

    response = client.delete(MCP_PATH, headers={"mcp-session-id": session_id})
    assert response.status_code == 200
    assert session_id not in sessions
    assert transport.closed

    assert rpc(client, session_id, "ping").status_code == 400
    get_response = client.get(MCP_PATH, headers={"accept": "text/event-stream", "mcp-session-id": session_id})
    assert get_response.status_code == 400
    assert get_response.json()["error"] == NO_VALID_SESSION


def test_delete_unknown_session_returns_400(client):
    response = client.delete(MCP_PATH, headers={"mcp-session-id": "missing"})

    assert response.status_code == 400
    assert response.json()["error"] == NO_VALID_SESSION


def test_delete_twice_removes_once(client):
    session_id = initialize_session(client)

    first = client.delete(MCP_PATH, headers={"mcp-session-id": session_id})
    second = client.delete(MCP_PATH, headers={"mcp-session-id": session_id})

    assert first.status_code == 200
    assert second.status_code == 400


def test_non_initialize_without_session_header_creates_nothing(client, sessions):
    response = client.post(
        MCP_PATH,
        json={"jsonrpc": "2.0", "id": 3, "method": "tools/list"},
        headers=ACCEPT_BOTH,
    )

    assert response.status_code == 400
    assert response.json() == {
        "jsonrpc": "2.0",
        "error": {"code": -32000, "message": "Bad Request: Server not initialized"},
        "id": 3,
    }
    assert len(sessions) == 0


def test_reinitialize_active_session_fails_loudly(client, sessions):
    session_id = initialize_session(client)
    transport = sessions.get(session_id)

    response = client.post(
        MCP_PATH,
        json=INITIALIZE_REQUEST,
        headers={**ACCEPT_BOTH, "mcp-session-id": session_id},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32600
    assert response.headers["mcp-session-id"] == session_id
    assert sessions.get(session_id) is transport
    assert len(sessions) == 1


def test_refused_initialize_leaves_no_session(client, sessions):
    response = client.post(MCP_PATH, json=INITIALIZE_REQUEST, headers={"accept": "text/html"})

    assert response.status_code == 406
    assert len(sessions) == 0


def test_notification_is_accepted_without_body(client):
    session_id = initialize_session(client)

    response = client.post(
        MCP_PATH,
        json={"jsonrpc": "2.0", "method": "notifications/initialized"},
        headers={**ACCEPT_BOTH, "mcp-session-id": session_id},
    )

    assert response.status_code == 202
    assert response.content == b""


def test_ping_and_unknown_method(client):
    session_id = initialize_session(client)

    response = rpc(client, session_id, "ping")
    assert response.json() == {"jsonrpc": "2.0", "result": {}, "id": 2}
    assert response.headers["mcp-session-id"] == session_id

    error = rpc(client, session_id, "resources/list").json()["error"]
    assert error["code"] == -32601


def test_malformed_json_is_a_parse_error(client, sessions):
    response = client.post(
        MCP_PATH,
        content=b"{not json",
        headers={**ACCEPT_BOTH, "content-type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32700
    assert len(sessions) == 0


def test_invalid_jsonrpc_envelope_is_rejected(client, sessions):
    response = client.post(MCP_PATH, json={"id": 1, "method": "initialize"}, headers=ACCEPT_BOTH)

    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32602
    assert len(sessions) == 0


def test_unacceptable_accept_header_returns_406(client):
    session_id = initialize_session(client)

    response = client.post(
        MCP_PATH,
        json={"jsonrpc": "2.0", "id": 5, "method": "ping"},
        headers={"accept": "text/html", "mcp-session-id": session_id},
    )

    assert response.status_code == 406


def test_tools_list_publishes_schemas(client):
    session_id = initialize_session(client)

    tools = {tool["name"]: tool for tool in rpc(client, session_id, "tools/list").json()["result"]["tools"]}

    assert set(tools) == {"actual.accounts.list", "actual.transactions.create"}
    assert tools["actual.accounts.list"]["description"] == "List all accounts"
    create_schema = tools["actual.transactions.create"]["inputSchema"]
    assert {"account", "date", "amount"} <= set(create_schema["required"])


def test_tools_call_list_accounts(client, fake_client):
    session_id = initialize_session(client)

    response = rpc(client, session_id, "tools/call", {"name": "actual.accounts.list", "arguments": {}})

    result = response.json()["result"]
    assert result.get("isError", False) is False
    envelope = json.loads(result["content"][0]["text"])
    assert envelope == result["structuredContent"]
    assert [account["id"] for account in envelope["result"]] == ["acc-1", "acc-2"]
    assert fake_client.connect_calls == 1
    assert fake_client.list_calls == 1


def test_progress_request_still_gets_single_json_response(client):
    session_id = initialize_session(client)

    response = rpc(client, session_id, "tools/call", {
        "name": "actual.accounts.list",
        "arguments": {},
        "_meta": {"progressToken": "p-1"},
    })

    assert response.headers["content-type"].startswith("application/json")
    assert response.json()["id"] == 2
    assert "structuredContent" in response.json()["result"]


def test_tools_call_create_transaction(client, fake_client):
    session_id = initialize_session(client)

    response = rpc(client, session_id, "tools/call", {
        "name": "actual.transactions.create",
        "arguments": {"account": "Checking", "date": "2025-03-01", "amount": "-12.50", "payee": "Bakery"},
    })

    envelope = response.json()["result"]["structuredContent"]
    assert envelope["result"]["id"] == "tx-1"
    assert len(fake_client.created) == 1
    assert fake_client.created[0].amount == Decimal("-12.50")
    assert fake_client.created[0].payee == "Bakery"


def test_invalid_tool_arguments_never_reach_backend(client, fake_client):
    session_id = initialize_session(client)

    response = rpc(client, session_id, "tools/call", {
        "name": "actual.transactions.create",
        "arguments": {"account": "Checking", "date": "not-a-date"},
    })

    error = response.json()["error"]
    assert error["code"] == -32602
    fields = {tuple(item["loc"]) for item in error["data"]}
    assert ("amount",) in fields
    assert ("date",) in fields
    assert fake_client.created == []
    assert fake_client.connect_calls == 0


def test_unknown_tool_is_invalid_params(client):
    session_id = initialize_session(client)

    error = rpc(client, session_id, "tools/call", {"name": "actual.budgets.delete"}).json()["error"]

    assert error == {"code": -32602, "message": "Unknown tool: actual.budgets.delete"}


def test_handshake_failure_is_replayed_to_every_caller(settings):
    from actual_mcp.connection import ActualConnection
    from actual_mcp.mcp.registry import build_default_registry
    from tests.mcp_helpers import FakeBudgetClient

    failing = FakeBudgetClient(connect_error=RuntimeError("invalid password"))
    app = create_app(settings, connection=ActualConnection(failing, build_default_registry()))

    with TestClient(app) as client:
        session_id = initialize_session(client)
        errors = [
            rpc(client, session_id, "tools/call", {"name": "actual.accounts.list"}, request_id=i).json()["error"]
            for i in range(3)
        ]

    assert errors == [{"code": -32603, "message": "invalid password"}] * 3
    assert failing.connect_calls == 1
    assert failing.list_calls == 0


def test_missing_backend_settings_surface_as_tool_error(settings):
    from actual_mcp.connection import ActualConnection
    from actual_mcp.exceptions import BackendConfigurationError
    from actual_mcp.mcp.registry import build_default_registry
    from tests.mcp_helpers import FakeBudgetClient

    failing = FakeBudgetClient(connect_error=BackendConfigurationError("ACTUAL_SERVER_URL not set"))
    app = create_app(settings, connection=ActualConnection(failing, build_default_registry()))

    with TestClient(app) as client:
        session_id = initialize_session(client)
        error = rpc(client, session_id, "tools/call", {"name": "actual.accounts.list"}).json()["error"]

    assert error == {"code": -32603, "message": "ACTUAL_SERVER_URL not set"}


def test_connect_on_startup_runs_handshake_once(settings, connection, fake_client):
    settings.mcp_bridge_connect_on_startup = True
    app = create_app(settings, connection=connection)

    with TestClient(app) as client:
        session_id = initialize_session(client)
        rpc(client, session_id, "tools/call", {"name": "actual.accounts.list"})

    assert fake_client.connect_calls == 1


def test_startup_handshake_failure_is_not_fatal(settings):
    from actual_mcp.connection import ActualConnection, ConnectionState
    from actual_mcp.mcp.registry import build_default_registry
    from tests.mcp_helpers import FakeBudgetClient

    settings.mcp_bridge_connect_on_startup = True
    failing = FakeBudgetClient(connect_error=RuntimeError("server unreachable"))
    connection = ActualConnection(failing, build_default_registry())
    app = create_app(settings, connection=connection)

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
        assert connection.state is ConnectionState.FAILED


def test_shutdown_closes_every_session_and_the_backend(app, fake_client):
    with TestClient(app) as client:
        ids = [initialize_session(client) for _ in range(3)]
        sessions = app.state.session_router.sessions
        transports = [sessions.get(session_id) for session_id in ids]

    assert len(sessions) == 0
    assert all(transport.closed for transport in transports)
    assert fake_client.close_calls == 1


def test_shutdown_survives_a_failing_session_close(app, fake_client):
    with TestClient(app) as client:
        ids = [initialize_session(client) for _ in range(3)]
        sessions = app.state.session_router.sessions
        transports = [sessions.get(session_id) for session_id in ids]
        transports[0].close = AsyncMock(side_effect=RuntimeError("stream already gone"))

    assert len(sessions) == 0
    transports[0].close.assert_awaited_once()
    assert all(transport.closed for transport in transports[1:])
    assert fake_client.close_calls == 1


def test_sse_mode_streams_progress_before_the_result(settings, connection):
    settings.mcp_bridge_json_response = False
    app = create_app(settings, connection=connection)

    with TestClient(app) as client:
        session_id = initialize_session(client)
        response = rpc(client, session_id, "tools/call", {
            "name": "actual.accounts.list",
            "arguments": {},
            "_meta": {"progressToken": "p-1"},
        })

    assert response.headers["content-type"].startswith("text/event-stream")
    messages = sse_messages(response.text)
    progress = [message for message in messages if message.get("method") == "notifications/progress"]
    assert [item["params"]["progress"] for item in progress] == [0, 1]
    assert all(item["params"]["progressToken"] == "p-1" for item in progress)
    assert messages[-1]["id"] == 2
    assert "structuredContent" in messages[-1]["result"]


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_custom_http_path(settings, connection):
    settings.mcp_bridge_http_path = "/bridge"
    app = create_app(settings, connection=connection)

    with TestClient(app) as client:
        response = client.post("/bridge", json=INITIALIZE_REQUEST, headers=ACCEPT_BOTH)
        assert response.status_code == 200
        assert client.post(MCP_PATH, json=INITIALIZE_REQUEST, headers=ACCEPT_BOTH).status_code in (404, 405)
