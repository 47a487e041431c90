import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from vision.api.endpoints import boards, invites, organizations
from vision.core.config import settings
from vision.core.exceptions import DomainError, MembershipError
from vision.core.logging import capture_error, init_sentry, setup_logging
from vision.db.session import init_db
from vision.middleware.logging import AccessLoggingMiddleware

logger = logging.getLogger(__name__)

# Initialize logging and error tracking
setup_logging()
init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


app = FastAPI(
    title="Project Vision - Membership & Moderation API",
    description="""
## Authentication

Every endpoint except `/health` requires a bearer token issued by the Project
Vision auth service (`Authorization: Bearer <token>`).

## Membership model

- **Organizations** own boards; members are ADMIN, MODERATOR or MEMBER.
  Banning removes the membership and records a ban.
- **Boards** are personal or belong to an organization. The creator is an
  implicit admin; organization members inherit their organization role on
  boards where they have no board role. Board bans are kept on the member row.
- **Invites** add users to organizations or boards once accepted.

Every moderation action is written to the audit log.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(AccessLoggingMiddleware, enabled=settings.ACCESS_LOG_ENABLED)


# ==================== Exception Handlers ====================

@app.exception_handler(MembershipError)
async def membership_error_handler(request: Request, exc: MembershipError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": errors, "code": DomainError.INVALID_REQUEST.value},
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    capture_error(
        exc,
        context={"request": {"method": request.method, "path": request.url.path}},
        tags={"component": "database"},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error.", "code": "INTERNAL_ERROR"},
    )


app.include_router(organizations.router, prefix="/api/organizations", tags=["organizations"])
app.include_router(boards.router, prefix="/api/boards", tags=["boards"])
app.include_router(invites.router, prefix="/api/invites", tags=["invites"])


@app.get("/")
def root():
    return {"message": "Project Vision membership API. See /docs for the OpenAPI schema."}


@app.get("/health")
def health():
    return {"status": "ok", "service": settings.APP_NAME}
