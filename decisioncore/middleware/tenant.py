"""
Tenant Context Middleware.

Every engine call is scoped to an explicit tenant. The host gateway
authenticates the caller and forwards the tenant in X-Tenant-ID and the
acting user in X-User-ID; this middleware copies them onto request.state.
"""

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = structlog.get_logger(__name__)

TENANT_HEADER = "X-Tenant-ID"
USER_HEADER = "X-User-ID"

# Served without a tenant: liveness probe and API docs
TENANTLESS_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


def _needs_tenant(request: Request) -> bool:
    if request.method == "OPTIONS":
        return False
    path = request.url.path
    return path not in TENANTLESS_PATHS and path.rstrip("/") not in TENANTLESS_PATHS


class TenantMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next) -> Response:
        if not _needs_tenant(request):
            return await call_next(request)

        tenant_id = request.headers.get(TENANT_HEADER, "").strip()
        if not tenant_id:
            logger.warning("tenant_header_missing", path=request.url.path, method=request.method)
            return JSONResponse(status_code=401, content={"detail": f"Missing {TENANT_HEADER} header"})

        request.state.tenant_id = tenant_id
        request.state.user_id = request.headers.get(USER_HEADER, "").strip() or None
        return await call_next(request)
