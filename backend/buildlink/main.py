"""FastAPI 애플리케이션 진입점. 미들웨어, 예외 핸들러, API 라우터를 등록합니다."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from buildlink.config import settings
from buildlink.database import Base, engine
from buildlink.errors import ServiceError
import buildlink.models  # noqa: F401 - 모델 import로 metadata 등록
from buildlink.routers import (
    auth, projects, milestones, escrow, payments, documents,
    payment_accounts, transactions, notifications, admin,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="BuildLink 마일스톤 에스크로 API",
    description="건설 프로젝트의 마일스톤 검증, 에스크로 예치와 정산을 관리하는 시스템",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(message: str, error_code: str, errors=None) -> dict:
    body = {"success": False, "message": message, "meta": {"error_code": error_code}}
    if errors:
        body["errors"] = errors
    return body


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.warning("[escrow] %s %s -> %s: %s", request.method, request.url.path, exc.error_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.error_code, exc.errors))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        # body.milestones.0.amount -> milestones.0.amount
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        key = ".".join(loc) or "body"
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(key, []).append(message)
    return JSONResponse(status_code=422, content=_error_body("The given data was invalid.", "validation_failed", errors))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    codes = {401: "unauthenticated", 403: "forbidden", 404: "not_found", 405: "method_not_allowed"}
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail), codes.get(exc.status_code, "http_error")),
        headers=getattr(exc, "headers", None),
    )


# Register all routers
app.include_router(auth.router)
app.include_router(projects.router)
app.include_router(milestones.router)
app.include_router(escrow.router)
app.include_router(payments.router)
app.include_router(documents.router)
app.include_router(payment_accounts.router)
app.include_router(transactions.router)
app.include_router(notifications.router)
app.include_router(admin.router)


@app.on_event("startup")
def ensure_schema():
    Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok", "service": "BuildLink 마일스톤 에스크로 API"}
