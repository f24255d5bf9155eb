from __future__ import annotations

import time
from uuid import uuid4

import orjson
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.exception_handlers import (
    http_exception_handler,
    request_validation_exception_handler,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import text
from starlette.middleware.trustedhost import TrustedHostMiddleware

from questforge_api.core.config import Settings
from questforge_api.db import SessionLocal
from questforge_api.errors import QuestForgeError
from questforge_api.metrics import observe_http_request, render_prometheus_metrics


def _parse_csv(value: str) -> list[str]:
    raw = str(value or "").strip()
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def create_app(*, settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(
        title="QuestForge API",
        version="0.1.0",
        openapi_url="/api/openapi.json",
        docs_url="/docs",
    )

    allowed_hosts = _parse_csv(settings.allowed_hosts) or ["*"]
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)

    cors_origins = _parse_csv(settings.cors_allowed_origins)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def _request_context(request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("x-request-id") or f"req_{uuid4().hex}"
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception:  # noqa: BLE001
            duration_ms = (time.perf_counter() - start) * 1000.0
            _observe_http(request=request, status_code=500, duration_ms=duration_ms)
            if settings.log_json:
                _log_json(
                    {
                        "level": "error",
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "status": 500,
                        "duration_ms": round(duration_ms, 2),
                    }
                )
            raise

        duration_ms = (time.perf_counter() - start) * 1000.0
        _observe_http(
            request=request, status_code=response.status_code, duration_ms=duration_ms
        )
        response.headers["X-Request-Id"] = request_id

        if settings.log_json:
            _log_json(
                {
                    "level": "info" if response.status_code < 500 else "error",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            )

        return response

    def _with_request_id(request: Request, resp: Response) -> Response:
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            resp.headers["X-Request-Id"] = str(request_id)
        return resp

    @app.exception_handler(QuestForgeError)
    async def _domain_error(request: Request, exc: QuestForgeError):
        if settings.log_json:
            _log_json(
                {
                    "level": "warning",
                    "request_id": getattr(request.state, "request_id", None),
                    "path": request.url.path,
                    "error": exc.code,
                    "status": exc.status_code,
                }
            )
        resp = JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})
        return _with_request_id(request, resp)

    @app.exception_handler(HTTPException)
    async def _with_request_id_http_exception(request: Request, exc: HTTPException):
        resp = await http_exception_handler(request, exc)
        return _with_request_id(request, resp)

    @app.exception_handler(RequestValidationError)
    async def _with_request_id_validation_error(
        request: Request, exc: RequestValidationError
    ):
        resp = await request_validation_exception_handler(request, exc)
        return _with_request_id(request, resp)

    @app.exception_handler(Exception)
    async def _with_request_id_unhandled(request: Request, exc: Exception):
        _ = exc
        resp = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
        return _with_request_id(request, resp)

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/ready")
    def ready() -> dict[str, object]:
        db_ok = False
        db_err: str | None = None
        try:
            with SessionLocal() as session:
                session.execute(text("SELECT 1"))
            db_ok = True
        except Exception as exc:  # noqa: BLE001
            db_err = str(exc)[:400]
        return {
            "status": "ok" if db_ok else "fail",
            "db": {"ok": db_ok, "error": db_err},
        }

    @app.get("/api/metrics", response_class=PlainTextResponse)
    def metrics() -> Response:
        with SessionLocal() as session:
            text_out = render_prometheus_metrics(db=session)
        return PlainTextResponse(
            content=text_out, media_type="text/plain; version=0.0.4"
        )

    from questforge_api.routers import auth, challenges, quests, templates, users

    app.include_router(auth.router)
    app.include_router(quests.router)
    app.include_router(templates.router)
    app.include_router(challenges.router)
    app.include_router(users.router)

    return app


def _observe_http(
    *,
    request: Request,
    status_code: int,
    duration_ms: float | None = None,
) -> None:
    route = request.scope.get("route")
    template = getattr(route, "path", None) if route is not None else None
    observe_http_request(
        path=str(template or request.url.path),
        method=request.method,
        status=str(status_code),
        duration_ms=duration_ms,
    )


def _log_json(payload: dict[str, object]) -> None:
    try:
        print(orjson.dumps(payload).decode("utf-8"))
    except Exception:  # noqa: BLE001
        pass


app = create_app()
