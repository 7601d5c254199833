import logging
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response

from marketplace.api.v1.auth import router as auth_router
from marketplace.api.v1.bookings import router as bookings_router
from marketplace.api.v1.messages import router as messages_router
from marketplace.api.v1.profiles import router as profiles_router
from marketplace.api.v1.skills import router as skills_router
from marketplace.api.v1.tutors import router as tutors_router
from marketplace.core.config import settings
from marketplace.core.exceptions import register_exception_handlers
from marketplace.core.logging import setup_logging
from marketplace.core.metrics import REQUEST_COUNT, REQUEST_LATENCY, render_metrics
from marketplace.core.request_context import request_id_ctx_var, route_path

setup_logging()
logger = logging.getLogger("marketplace.request")

ROUTERS = (auth_router, profiles_router, skills_router, tutors_router, bookings_router, messages_router)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.getLogger("marketplace").info(
        "startup env=%s rate_limit_backend=%s", settings.app_env, settings.rate_limit_backend
    )
    yield
    logging.getLogger("marketplace").info("shutdown env=%s", settings.app_env)


app = FastAPI(title="Tutor Marketplace API", version="0.1.0", lifespan=lifespan)
register_exception_handlers(app)
for router in ROUTERS:
    app.include_router(router)


def _observe(request: Request, status_code: int, started: float) -> float:
    elapsed = time.perf_counter() - started
    path = route_path(request)
    REQUEST_COUNT.labels(method=request.method, path=path, status_code=status_code).inc()
    REQUEST_LATENCY.labels(method=request.method, path=path).observe(elapsed)
    return elapsed


@app.middleware("http")
async def observability_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    token = request_id_ctx_var.set(request_id)
    started = time.perf_counter()
    try:
        try:
            response = await call_next(request)
        except Exception:
            elapsed = _observe(request, 500, started)
            logger.exception(
                "request_failed method=%s path=%s status=500 duration_ms=%.2f",
                request.method,
                route_path(request),
                elapsed * 1000,
            )
            raise

        elapsed = _observe(request, response.status_code, started)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request_completed method=%s path=%s status=%s duration_ms=%.2f",
            request.method,
            route_path(request),
            response.status_code,
            elapsed * 1000,
        )
        return response
    finally:
        request_id_ctx_var.reset(token)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["observability"])
def metrics() -> Response:
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)
