"""
HTTP API for the recommendation registry.

The caller identity travels in the ``X-Caller-Id`` header, standing in for a
connected wallet address.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Header, Path, Query, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from .schemas import (
    StudentCreateRequest,
    StudentCreateResponse,
    ApproverAuthorizeRequest,
    StudentResponse,
    SuccessResponse,
    CountResponse,
    HealthResponse,
    AuditEventResponse,
    EventListResponse,
    ErrorResponse,
)
from ..core.config import VERSION, CORS_ORIGINS, debug_enabled, build_engine
from ..core.errors import (
    RegistryError,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    InvalidStateError,
    StoreUnavailableError,
)
from ..core.workflow import WorkflowEngine
from ..util.logging import logger

ERROR_STATUS = {
    ValidationError: 400,
    UnauthorizedError: 403,
    NotFoundError: 404,
    InvalidStateError: 409,
    StoreUnavailableError: 503,
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def status_for(error: RegistryError) -> int:
    for error_class, status in ERROR_STATUS.items():
        if isinstance(error, error_class):
            return status
    return 500


def get_engine(request: Request) -> WorkflowEngine:
    return request.app.state.engine


def create_app(engine: WorkflowEngine = None) -> FastAPI:
    """Build the API around an engine; without one, the configured engine is built at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "engine", None) is None:
            app.state.engine = build_engine()
            logger.info(f"Registry API started with {type(app.state.engine.store).__name__}")
        yield

    app = FastAPI(
        title="Recommendation Registry API",
        version=VERSION,
        description="Students, approvers and the letter-of-recommendation workflow",
        docs_url="/docs" if debug_enabled() else None,
        redoc_url="/redoc" if debug_enabled() else None,
        lifespan=lifespan
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        return JSONResponse(status_code=status_for(exc), content=exc.to_dict())

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint(engine: WorkflowEngine = Depends(get_engine)):
        """Check system health."""
        db_health = engine.store.health_check()
        count = engine.student_count()

        return HealthResponse(
            status="healthy" if db_health and count.ok else "unhealthy",
            version=VERSION,
            db_health=db_health,
            student_count=count.value if count.ok else 0
        )

    @app.post("/students", response_model=StudentCreateResponse, status_code=201, responses=ERROR_RESPONSES)
    def add_student_endpoint(
        request: StudentCreateRequest,
        caller: Optional[str] = Header(None, alias="X-Caller-Id"),
        engine: WorkflowEngine = Depends(get_engine)
    ):
        """Add a student; the new id is returned directly."""
        student_id = engine.add_student(caller, request.name, request.email, request.course).unwrap()
        return StudentCreateResponse(id=student_id)

    @app.post("/approvers", response_model=SuccessResponse, responses=ERROR_RESPONSES)
    def authorize_approver_endpoint(
        request: ApproverAuthorizeRequest,
        caller: Optional[str] = Header(None, alias="X-Caller-Id"),
        engine: WorkflowEngine = Depends(get_engine)
    ):
        """Authorize an approver (registry owner only)."""
        engine.authorize_approver(caller, request.identity).unwrap()
        return SuccessResponse(message="Approver authorized")

    # Define /students/count BEFORE /students/{student_id} to avoid path parameter conflict
    @app.get("/students/count", response_model=CountResponse, responses=ERROR_RESPONSES)
    def student_count_endpoint(engine: WorkflowEngine = Depends(get_engine)):
        return CountResponse(count=engine.student_count().unwrap())

    @app.get("/students/{student_id}", response_model=StudentResponse, responses=ERROR_RESPONSES)
    def get_student_endpoint(student_id: int = Path(..., ge=0), engine: WorkflowEngine = Depends(get_engine)):
        """Get a single student record."""
        record = engine.get_student(student_id).unwrap()
        return StudentResponse(**record.to_dict())

    @app.post("/students/{student_id}/request", response_model=SuccessResponse, responses=ERROR_RESPONSES)
    def request_recommendation_endpoint(
        student_id: int = Path(..., ge=0),
        caller: Optional[str] = Header(None, alias="X-Caller-Id"),
        engine: WorkflowEngine = Depends(get_engine)
    ):
        engine.request_recommendation(caller, student_id).unwrap()
        return SuccessResponse(message="Recommendation requested")

    @app.post("/students/{student_id}/approve", response_model=SuccessResponse, responses=ERROR_RESPONSES)
    def approve_recommendation_endpoint(
        student_id: int = Path(..., ge=0),
        caller: Optional[str] = Header(None, alias="X-Caller-Id"),
        engine: WorkflowEngine = Depends(get_engine)
    ):
        engine.approve_recommendation(caller, student_id).unwrap()
        return SuccessResponse(message="Recommendation approved")

    @app.get("/events", response_model=EventListResponse, responses=ERROR_RESPONSES)
    def list_events_endpoint(limit: int = Query(100, ge=1, le=1000), engine: WorkflowEngine = Depends(get_engine)):
        """Recent audit events (only available in DEBUG mode)."""
        if not debug_enabled():
            return JSONResponse(
                status_code=403,
                content={"error_type": "FORBIDDEN", "message": "Audit endpoint requires debug mode"}
            )

        events = engine.recent_events(limit).unwrap()
        return EventListResponse(events=[AuditEventResponse(**e.to_dict()) for e in events])

    return app


app = create_app()
