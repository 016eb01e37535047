from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional
import threading

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from parley.bootstrap import build_app
from parley.core.chat_session import ChatSession
from parley.core.errors import ProviderClientError, ProviderError, UnavailableError
from parley.providers.registry import ProviderRegistry

# Oldest sessions are dropped past this; history is in-memory only.
MAX_SESSIONS = 256


class ChatRequest(BaseModel):
    session_id: Optional[str] = None
    message: str


def create_app(
    config_path: Path,
    *,
    provider_kwargs: Optional[Dict[str, Any]] = None,
    max_sessions: int = MAX_SESSIONS,
) -> FastAPI:
    ctx = build_app(Path(config_path), provider_kwargs=provider_kwargs)
    cfg = ctx["cfg"]

    app = FastAPI()
    app.state.cfg = cfg
    app.state.provider = ctx["provider"]
    app.state.params = ctx["params"]
    app.state.system_prompt = ctx["system_prompt"]
    app.state.sessions: Dict[str, ChatSession] = {}
    app.state.lock = threading.Lock()

    @app.exception_handler(ProviderError)
    def _provider_error(_request: Request, exc: ProviderError) -> JSONResponse:
        if isinstance(exc, UnavailableError):
            status = 503
        elif isinstance(exc, ProviderClientError):
            status = 400
        else:
            status = 502
        return JSONResponse({"error": type(exc).__name__, "detail": str(exc)}, status_code=status)

    def _create_session() -> ChatSession:
        chat_session = ChatSession(
            app.state.provider,
            system_prompt=app.state.system_prompt,
            params=app.state.params,
        )
        with app.state.lock:
            app.state.sessions[chat_session.session_id] = chat_session
            while len(app.state.sessions) > max_sessions:
                app.state.sessions.pop(next(iter(app.state.sessions)))
        return chat_session

    def _get_session(session_id: Optional[str]) -> tuple[str, ChatSession]:
        if session_id:
            with app.state.lock:
                session = app.state.sessions.get(session_id)
            if session is not None:
                return session_id, session
        # Missing or unknown id: start a fresh session
        fresh = _create_session()
        return fresh.session_id, fresh

    @app.get("/api/config")
    def api_config():
        name, desc = app.state.provider.identity()
        return JSONResponse(
            {
                "provider": cfg["model"]["provider"],
                "model": name,
                "description": desc,
                "stream": bool(cfg["runtime"]["stream"]),
            }
        )

    @app.get("/api/models")
    def api_models():
        active = cfg["model"]["provider"]
        listing = []
        for key in ProviderRegistry.names():
            if key == active:
                info = app.state.provider.model_info()
            else:
                info = ProviderRegistry.get(key)().model_info()
            listing.append({"key": key, "active": key == active, **asdict(info)})
        return JSONResponse({"models": listing})

    @app.post("/api/session")
    def api_session():
        return JSONResponse({"session_id": _create_session().session_id})

    @app.post("/api/chat")
    def api_chat(req: ChatRequest):
        if not req.message.strip():
            raise HTTPException(status_code=400, detail="Empty message")
        session_id, session = _get_session(req.session_id)
        reply = session.run_turn(req.message)
        return JSONResponse({"session_id": session_id, "reply": reply})

    @app.post("/api/stream")
    def api_stream(req: ChatRequest):
        if not req.message.strip():
            raise HTTPException(status_code=400, detail="Empty message")
        session_id, session = _get_session(req.session_id)
        pieces = session.run_turn_stream(req.message)

        def gen():
            try:
                for chunk in pieces:
                    yield chunk
            except ProviderError as e:
                yield f"\n[error] {type(e).__name__}: {e}"
            finally:
                pieces.close()

        return StreamingResponse(gen(), media_type="text/plain", headers={"X-Session-Id": session_id})

    return app


def run(
    *,
    config: Path,
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    import uvicorn

    app = create_app(config)
    uvicorn.run(app, host=host, port=port)
