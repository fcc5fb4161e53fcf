"""HTTP transport: one POST endpoint carrying one protocol message per call."""

import logging
import os
from typing import Optional

from fastapi import FastAPI, Request, Response
from pydantic import ValidationError

from sqlbridge_mcp.models.protocol import (
    ErrorMessage,
    dump_message,
    parse_request,
)
from sqlbridge_mcp.server import (
    SqlBridgeServer,
    configure_logging,
    create_server_from_env,
)

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


def _json_response(message, status_code: int = 200) -> Response:
    return Response(
        content=dump_message(message),
        status_code=status_code,
        media_type=JSON_MEDIA_TYPE,
    )


def create_app(server: SqlBridgeServer) -> FastAPI:
    """
    Build the FastAPI application around a protocol server.

    ``POST /mcp`` accepts a single request message and answers with its
    response message. Unparseable bodies and error messages are returned
    with status 400.
    """
    app = FastAPI(
        title=server.config.name,
        version=server.config.version,
        description=server.config.description,
    )
    app.state.server = server

    @app.post("/mcp")
    async def handle_message(request: Request) -> Response:
        body = await request.body()
        try:
            message = parse_request(body)
        except ValidationError as e:
            logger.warning(f"Rejected malformed message: {e.error_count()} errors")
            return _json_response(
                ErrorMessage(
                    error="invalid_message",
                    message="Body is not a valid protocol request",
                    data=[
                        {"loc": [str(p) for p in err["loc"]], "msg": err["msg"]}
                        for err in e.errors()
                    ],
                ),
                status_code=400,
            )

        response = await server.handle(message)
        status_code = 400 if isinstance(response, ErrorMessage) else 200
        return _json_response(response, status_code)

    @app.get("/mcp/info")
    async def info() -> dict:
        return {
            "server_info": server.server_info.model_dump(),
            "capabilities": server.capabilities.model_dump(),
        }

    return app


def serve(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Entry point for the ``sqlbridge-mcp-http`` console script."""
    import uvicorn

    configure_logging()
    server = create_server_from_env()
    uvicorn.run(
        create_app(server),
        host=host or server.config.host,
        port=port or server.config.port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    serve()
