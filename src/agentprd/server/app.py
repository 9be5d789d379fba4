"""
FastAPI application exposing the agent.

    POST /agent    JSON body -> streamed multiplexed text; anything else -> JSON
    GET  /welcome  welcome text and sample prompts
    GET  /health   liveness probe
"""

from __future__ import annotations

import asyncio
import secrets
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

import agentprd
from agentprd.agent.generation import ChatModel
from agentprd.agent.orchestrator import ProductOrchestrator, is_json
from agentprd.config.models import Config
from agentprd.server.schemas import RequestContext
from agentprd.storage.kv import KeyValueStore, YamlKeyValueStore
from agentprd.utils.logger import get_logger

logger = get_logger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def create_app(
    config: Config,
    store: Optional[KeyValueStore] = None,
    llm: Optional[ChatModel] = None,
) -> FastAPI:
    """
    Build the agent application.

    ``store`` defaults to a YAML store under ``server.store_dir``. ``llm``
    defaults to an OpenAI client created on first use, so the app starts
    (and answers /health) without an API key.
    """
    app = FastAPI(title="AgentPRD", version=agentprd.__version__)
    app.state.config = config
    app.state.store = store or YamlKeyValueStore(config.server.store_dir)
    app.state.llm = llm
    app.state.orchestrator = None

    def get_orchestrator() -> ProductOrchestrator:
        if app.state.orchestrator is None:
            if app.state.llm is None:
                from agentprd.llm.openai_client import OpenAIClient
                app.state.llm = OpenAIClient(config.llm)
            app.state.orchestrator = ProductOrchestrator(config, app.state.store, app.state.llm)
        return app.state.orchestrator

    async def verify_token(authorization: Optional[str] = Header(None)) -> None:
        expected = config.server.api_key
        if expected is None:
            return
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing or invalid Authorization header")
        token = authorization.split(" ", 1)[1]
        if not secrets.compare_digest(token, expected.get_secret_value()):
            raise HTTPException(status_code=401, detail="Invalid agent token")

    @app.post("/agent", dependencies=[Depends(verify_token)])
    async def agent(request: Request):
        body = await request.body()
        content_type = request.headers.get("content-type")
        orchestrator = get_orchestrator()
        parsed = orchestrator.parse_request(body, content_type)

        # The header is a fallback for clients that only send the id there
        header_session = request.headers.get("x-session-id")
        if header_session:
            if parsed.context is None:
                parsed.context = RequestContext(session_id=header_session)
            elif not parsed.context.session_id:
                parsed.context.session_id = header_session

        if not is_json(content_type):
            reply = await orchestrator.complete_turn(parsed)
            return JSONResponse(reply.to_wire())

        async def body_stream() -> AsyncIterator[bytes]:
            try:
                async for chunk in orchestrator.stream_turn(parsed):
                    yield chunk
            except asyncio.CancelledError:
                logger.info("Client disconnected mid-stream")
                raise

        return StreamingResponse(
            body_stream(),
            media_type="text/plain; charset=utf-8",
            headers=STREAM_HEADERS,
        )

    @app.get("/welcome")
    async def welcome():
        return ProductOrchestrator.welcome()

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": agentprd.__version__}

    return app


def create_default_app() -> FastAPI:
    """App factory for uvicorn (``--factory``) using the loaded configuration."""
    from agentprd.config import get_config_safe
    return create_app(get_config_safe())


__all__ = ["create_app", "create_default_app", "STREAM_HEADERS"]
