#!/usr/bin/env python3
"""MCP (Model Context Protocol) server for a Tasks.md kanban board.

A thin JSON-RPC 2.0 layer over ``TaskRepository``:

- ``initialize`` opens a session (stateful mode); the session id travels out
  of band (``McpReply.session_id``, the ``Mcp-Session-Id`` header over HTTP).
- ``notifications/initialized`` marks the session ready.
- ``tools/list`` / ``tools/call`` need a live session in stateful mode.

Tool failures (unknown tool, bad arguments, repository errors) are returned as
``isError`` results so request/response pairing survives; only routing
problems produce top-level JSON-RPC errors.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TextIO

from application.ports import TaskRepository
from infrastructure.file_repository import FileTaskRepository
from interface.mcp_tools import build_tool_registry
from interface.sessions import SessionStore

logger = logging.getLogger("tasks_md.mcp")

MCP_VERSION = "2024-11-05"
SERVER_NAME = "tasks-md-mcp"
SERVER_VERSION = "1.0.0"
SERVER_INSTRUCTIONS = (
    "Tools for a Tasks.md kanban board. Lanes are columns; every task has an "
    "auto-generated id, a title, a lane and markdown content. Tags are #words "
    "inside the content. Use list_lanes / list_all_tasks to look around, "
    "add_task to create, update_task / move_task / rename_task to change, "
    "delete_task to remove."
)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SESSION_ERROR = -32001


@dataclass
class JsonRpcRequest:
    """JSON-RPC 2.0 request."""

    jsonrpc: str
    method: str
    id: Optional[int | str] = None
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_notification(self) -> bool:
        return self.id is None and self.method.startswith("notifications/")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JsonRpcRequest":
        return cls(
            jsonrpc=str(data.get("jsonrpc", "2.0") or "2.0"),
            method=str(data["method"]),
            id=data.get("id"),
            params=data.get("params", {}) if isinstance(data.get("params", {}), dict) else {},
        )


def json_rpc_response(id: Optional[int | str], result: Any) -> Dict[str, Any]:
    """Create JSON-RPC success response."""
    return {"jsonrpc": "2.0", "result": result, "id": id}


def json_rpc_error(id: Optional[int | str], code: int, message: str, data: Any = None) -> Dict[str, Any]:
    """Create JSON-RPC error response."""
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "error": error, "id": id}


@dataclass
class McpReply:
    """Response body (None for notifications) plus the out-of-band session id."""

    body: Optional[Dict[str, Any]]
    session_id: Optional[str] = None

    @property
    def is_session_error(self) -> bool:
        return bool(self.body and (self.body.get("error") or {}).get("code") == SESSION_ERROR)


def _text_content(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def _json_content(payload: Any) -> Dict[str, Any]:
    return _text_content(json.dumps(payload, ensure_ascii=False, indent=2))


def tool_error(message: str) -> Dict[str, Any]:
    return {"content": [_text_content(f"Error: {message}")], "isError": True}


class MCPServer:
    """Dispatches JSON-RPC requests to board tools.

    ``stateless=True`` skips sessions entirely; transports then build a fresh
    server per request.
    """

    def __init__(
        self,
        tasks_dir: Optional[Path] = None,
        *,
        repository: Optional[TaskRepository] = None,
        stateless: bool = False,
        sessions: Optional[SessionStore] = None,
    ):
        self.repository: TaskRepository = repository if repository is not None else FileTaskRepository(tasks_dir)
        self.stateless = stateless
        self.sessions: Optional[SessionStore] = None if stateless else (sessions if sessions is not None else SessionStore())
        self.tools = build_tool_registry()
        self._methods: Dict[str, Callable[[JsonRpcRequest, Optional[str]], McpReply]] = {
            "initialize": self._initialize,
            "notifications/initialized": self._notify_initialized,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
        }

    # ----------------------------------------------------------------- entry

    def handle_message(self, data: Any, session_id: Optional[str] = None) -> McpReply:
        """Validate a decoded JSON value as a request envelope and dispatch it."""
        if not isinstance(data, dict):
            return McpReply(json_rpc_error(None, INVALID_REQUEST, "Invalid Request"), session_id)
        request_id = data.get("id")
        if isinstance(request_id, (bool, list, dict)):
            return McpReply(json_rpc_error(None, INVALID_REQUEST, "Invalid Request"), session_id)
        method = data.get("method")
        if not isinstance(method, str) or not method or data.get("jsonrpc", "2.0") != "2.0":
            return McpReply(json_rpc_error(request_id, INVALID_REQUEST, "Invalid Request"), session_id)
        return self.handle_request(JsonRpcRequest.from_dict(data), session_id)

    def handle_request(self, request: JsonRpcRequest, session_id: Optional[str] = None) -> McpReply:
        handler = self._methods.get(request.method)
        if handler is None:
            if request.is_notification:
                return McpReply(None, session_id)
            return McpReply(json_rpc_error(request.id, METHOD_NOT_FOUND, f"Method not found: {request.method}"), session_id)
        try:
            return handler(request, session_id)
        except Exception as exc:
            logger.exception("MCP %s failed", request.method)
            return McpReply(json_rpc_error(request.id, INTERNAL_ERROR, "Internal error", str(exc)), session_id)

    # --------------------------------------------------------------- methods

    def _session_error(self, request: JsonRpcRequest, session_id: Optional[str]) -> Optional[McpReply]:
        if self.sessions is None:
            return None
        if not session_id:
            return McpReply(
                json_rpc_error(request.id, SESSION_ERROR, "Bad Request: No valid session ID provided"),
                None,
            )
        if self.sessions.get(session_id) is None:
            return McpReply(json_rpc_error(request.id, SESSION_ERROR, "Session not found"), None)
        return None

    def _initialize(self, request: JsonRpcRequest, session_id: Optional[str]) -> McpReply:
        result: Dict[str, Any] = {
            "protocolVersion": MCP_VERSION,
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "capabilities": {"tools": {}},
            "instructions": SERVER_INSTRUCTIONS,
        }
        if self.sessions is None:
            return McpReply(json_rpc_response(request.id, result), None)
        client_info = request.params.get("clientInfo")
        session = self.sessions.create(client_info if isinstance(client_info, dict) else {})
        return McpReply(json_rpc_response(request.id, result), session.session_id)

    def _notify_initialized(self, request: JsonRpcRequest, session_id: Optional[str]) -> McpReply:
        if self.sessions is None:
            return McpReply(None, None)
        marked = self.sessions.mark_initialized(session_id)
        if request.id is None:
            # notifications never get a body, not even an error
            if not marked:
                logger.warning("initialized notification for unknown session %s", session_id)
            return McpReply(None, session_id if marked else None)
        if not marked:
            return self._session_error(request, session_id) or McpReply(None, None)
        return McpReply(json_rpc_response(request.id, {}), session_id)

    def _ping(self, request: JsonRpcRequest, session_id: Optional[str]) -> McpReply:
        return McpReply(json_rpc_response(request.id, {}), session_id)

    def _tools_list(self, request: JsonRpcRequest, session_id: Optional[str]) -> McpReply:
        denied = self._session_error(request, session_id)
        if denied:
            return denied
        tools = [tool.descriptor() for tool in self.tools.values()]
        return McpReply(json_rpc_response(request.id, {"tools": tools}), session_id)

    def _tools_call(self, request: JsonRpcRequest, session_id: Optional[str]) -> McpReply:
        denied = self._session_error(request, session_id)
        if denied:
            return denied
        params = request.params
        tool_name = params.get("name")
        if not isinstance(tool_name, str) or not tool_name:
            return McpReply(json_rpc_error(request.id, INVALID_PARAMS, "Missing tool name"), session_id)
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return McpReply(json_rpc_error(request.id, INVALID_PARAMS, "arguments must be an object"), session_id)

        tool = self.tools.get(tool_name)
        if tool is None:
            return McpReply(json_rpc_response(request.id, tool_error(f"Unknown tool: {tool_name}")), session_id)
        try:
            payload = tool(self.repository, arguments)
        except Exception as exc:
            logger.info("tool %s failed: %s", tool_name, exc)
            result = tool_error(str(exc))
        else:
            result = {"content": [_json_content(payload)], "isError": False}
        return McpReply(json_rpc_response(request.id, result), session_id)


def _write(stream: TextIO, payload: Dict[str, Any]) -> None:
    stream.write(json.dumps(payload, ensure_ascii=False) + "\n")
    stream.flush()


def run_stdio(
    *,
    tasks_dir: Optional[Path] = None,
    server: Optional[MCPServer] = None,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """Run MCP server over stdio (newline-delimited JSON-RPC).

    The connection is one session: the id minted by ``initialize`` is kept by
    the loop and sent along with every later request.
    """
    server = server or MCPServer(tasks_dir=tasks_dir)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    session_id: Optional[str] = None
    for line in stdin:
        raw = line.strip()
        if not raw:
            continue
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            _write(stdout, json_rpc_error(None, PARSE_ERROR, f"Parse error: {exc}"))
            continue
        reply = server.handle_message(data, session_id)
        if reply.session_id and reply.session_id != session_id:
            if session_id and server.sessions is not None:
                server.sessions.terminate(session_id)
            session_id = reply.session_id
        if reply.body is None:
            continue
        _write(stdout, reply.body)
    if session_id and server.sessions is not None:
        server.sessions.terminate(session_id)
    return 0


def configure_logging(level: Optional[str] = None) -> None:
    """Log to stderr; stdout belongs to the JSON-RPC channel."""
    from config import get_log_level

    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, (level or get_log_level()).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Module entrypoint for `python -m interface.mcp_server`."""
    import argparse

    parser = argparse.ArgumentParser(prog="tasks-md-mcp", add_help=True)
    parser.add_argument("--tasks-dir", type=str, help="Board root (overrides TASKS_DIR / config).")
    parser.add_argument("--log-level", type=str, help="Logging level (default from config, WARNING).")
    parser.add_argument(
        "--no-reconcile",
        dest="reconcile",
        action="store_false",
        help="Skip repairing interrupted moves on startup.",
    )
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    tasks_dir = Path(args.tasks_dir).expanduser().resolve() if args.tasks_dir else None
    repository = FileTaskRepository(tasks_dir)
    if args.reconcile:
        repository.reconcile()
    return run_stdio(server=MCPServer(repository=repository))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
