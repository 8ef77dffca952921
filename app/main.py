import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi_mcp import AuthConfig, FastApiMCP
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.routers import debts_router, subscription_router, transactions_router, usage_router
from app.core.config import get_settings
from app.core.database import init_db
from app.core.errors import AppError
from app.core.limiter import limiter
from app.middleware.auth import get_current_user

settings = get_settings()

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Personal finance tracker: debts, transactions and free-tier usage limits.",
    version="1.0.0"
)

# Rate limiting through @limiter.limit() decorators only; the slowapi
# middleware breaks the SSE transport used by MCP.
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(debts_router)
app.include_router(transactions_router)
app.include_router(subscription_router)
app.include_router(usage_router)


@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/")
@limiter.limit("5/minute")
def read_root(request: Request):
    return {"message": f"{settings.APP_NAME} is running."}


@app.get("/health")
def health():
    return {"status": "ok"}


# MCP server: every endpoint becomes a tool under /mcp. The bearer token is
# forwarded to each tool call, so tools act as the authenticated user.
# Admin endpoints stay REST-only.
mcp = FastApiMCP(
    app,
    auth_config=AuthConfig(
        dependencies=[Depends(get_current_user)],
    ),
    headers=["authorization"],
    exclude_tags=["Admin"],
)
mcp.mount()
