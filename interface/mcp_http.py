#!/usr/bin/env python3
"""HTTP transport for the board MCP server.

Routes:
    POST   /mcp     -> one JSON-RPC request; session id in the Mcp-Session-Id header
    DELETE /mcp     -> terminate the session named by Mcp-Session-Id
    GET    /health  -> liveness plus the number of open MCP sessions

In stateless mode every POST is served by a fresh MCPServer and no session
header is needed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from flask import Flask, jsonify, request

from application.ports import TaskRepository
from infrastructure.file_repository import FileTaskRepository
from interface.mcp_server import (
    INTERNAL_ERROR,
    PARSE_ERROR,
    SESSION_ERROR,
    SERVER_NAME,
    SERVER_VERSION,
    MCPServer,
    configure_logging,
    json_rpc_error,
)
from interface.sessions import SessionStore

logger = logging.getLogger("tasks_md.http")

SESSION_HEADER = "Mcp-Session-Id"
MCP_ENDPOINT = "/mcp"


def create_app(
    tasks_dir: Optional[Path] = None,
    *,
    repository: Optional[TaskRepository] = None,
    stateless: Optional[bool] = None,
    sessions: Optional[SessionStore] = None,
) -> Flask:
    if repository is None:
        repository = FileTaskRepository(tasks_dir)
    if stateless is None:
        from config import get_transport_mode

        stateless = get_transport_mode() == "stateless"
    shared = None if stateless else MCPServer(repository=repository, sessions=sessions)

    app = Flask(__name__)
    app.config["MCP_STATELESS"] = stateless
    app.extensions["tasks_md_mcp"] = shared

    def _server() -> MCPServer:
        if shared is not None:
            return shared
        return MCPServer(repository=repository, stateless=True)

    @app.post(MCP_ENDPOINT)
    def mcp_post():
        data = request.get_json(force=True, silent=True)
        if data is None:
            return jsonify(json_rpc_error(None, PARSE_ERROR, "Parse error")), 400
        session_id = request.headers.get(SESSION_HEADER)
        try:
            reply = _server().handle_message(data, session_id)
        except Exception:
            logger.exception("MCP request error")
            request_id = data.get("id") if isinstance(data, dict) else None
            body = json_rpc_error(request_id, INTERNAL_ERROR, "Internal server error during MCP request handling")
            return jsonify(body), 500

        if reply.body is None:
            response = app.response_class(status=202)
        else:
            response = jsonify(reply.body)
            if reply.is_session_error:
                response.status_code = 404 if session_id else 401
        if reply.session_id:
            response.headers[SESSION_HEADER] = reply.session_id
        return response

    @app.delete(MCP_ENDPOINT)
    def mcp_delete():
        session_id = request.headers.get(SESSION_HEADER)
        if shared is not None and shared.sessions is not None and shared.sessions.terminate(session_id):
            return "", 204
        return jsonify(json_rpc_error(None, SESSION_ERROR, "Session not found")), 404

    @app.get("/health")
    def health():
        active = 0
        if shared is not None and shared.sessions is not None:
            shared.sessions.sweep()
            active = len(shared.sessions)
        return jsonify(
            {
                "status": "healthy",
                "service": SERVER_NAME,
                "version": SERVER_VERSION,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "mcp_endpoint": MCP_ENDPOINT,
                "mode": "stateless" if stateless else "stateful",
                "active_mcp_sessions": active,
            }
        )

    return app


def main(argv: Optional[List[str]] = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(prog="tasks-md-http", description="Tasks.md MCP server over HTTP")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--tasks-dir", type=str, help="Board root (overrides TASKS_DIR / config).")
    parser.add_argument("--stateless", action="store_true", default=None, help="Serve every request with a fresh server.")
    parser.add_argument("--log-level", type=str, help="Logging level (default from config, WARNING).")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    tasks_dir = Path(args.tasks_dir).expanduser().resolve() if args.tasks_dir else None
    repository = FileTaskRepository(tasks_dir)
    repository.reconcile()
    app = create_app(repository=repository, stateless=args.stateless)
    logger.info("MCP endpoint available at http://%s:%s%s", args.host, args.port, MCP_ENDPOINT)
    app.run(host=args.host, port=args.port, debug=False, threaded=True)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
