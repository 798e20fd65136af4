import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from .config import ALLOW_CREDENTIALS, API_PREFIX, allowed_origins
from .exceptions import DomainException, ProblemDetail
from .limits import limiter, rate_limit_handler
from .routers import live, matches, stats
from .utils.sentry import init_sentry

logger = logging.getLogger(__name__)

init_sentry()

app = FastAPI(title="Volleyball Scout API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("Serving API under %r", API_PREFIX)


def _problem(
    request: Request,
    status: int,
    code: str,
    title: str,
    detail: Optional[str] = None,
    type_: str = "about:blank",
) -> JSONResponse:
    problem = ProblemDetail(
        type=type_,
        title=title,
        detail=detail,
        status=status,
        instance=request.url.path,
        code=code,
    )
    return JSONResponse(
        status_code=status,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s on %s: %s", exc.code, request.url.path, exc.detail)
    return _problem(request, exc.status_code, exc.code, exc.title, exc.detail, exc.type)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    code = getattr(exc, "code", f"http_{exc.status_code}")
    response = _problem(request, exc.status_code, code, detail, detail)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        messages.append(f"{loc}: {err.get('msg')}")
    return _problem(
        request, 422, "validation_error", "Request validation failed", "; ".join(messages)
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s", request.url.path, exc_info=exc)
    return _problem(request, 500, "internal_server_error", "Internal Server Error", str(exc))


# unprefixed for reverse proxies and uptime checks
@app.get("/healthz", tags=["health"])
def root_healthz():
    return {"status": "ok"}


api_router = APIRouter(prefix=API_PREFIX)


@api_router.get("/healthz", tags=["health"])
def api_healthz():
    return {"status": "ok"}


@api_router.get("", tags=["meta"])
def api_root():
    return {"message": "Volleyball Scout API. See /docs."}


v0_router = APIRouter(prefix="/v0")
for module in (matches, live, stats):
    v0_router.include_router(module.router)
api_router.include_router(v0_router)
app.include_router(api_router)
