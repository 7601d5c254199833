from contextvars import ContextVar

from fastapi import Request

request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default="-")


def route_path(request: Request) -> str:
    # Route templates keep metric label cardinality bounded.
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)
