"""
HTTP API for the Finance Tracker Core

The REST surface the web client talks to:
- schedule management under /recurring
- POST /recurring/process, called by the client once per session
- GET /projections for the projection page
- POST /debt/calculate for the debt payoff planner

Authentication is handled upstream: the authenticated owner arrives in the
X-Owner-Id header. Requests without it are rejected.

Response keys are camelCase because that is what the client consumes.
"""

from typing import Any, Optional
from uuid import UUID

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from finance_tracker.models.ledger import ScheduleRequest
from finance_tracker.orchestrator import AppComponents, create_app_components
from finance_tracker.services.storage import NotFoundError, StorageError
from finance_tracker.validation import ValidationError, validate_horizon


logger = structlog.get_logger(__name__)


class DebtCalculateIn(BaseModel):
    """Body of POST /debt/calculate. The amount is validated by the simulator."""
    model_config = ConfigDict(populate_by_name=True)

    extra_payment: Any = Field(default=None, alias="extraPayment")


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def get_owner_id(x_owner_id: Optional[str] = Header(default=None)) -> str:
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized",
        )
    return x_owner_id.strip()


def _parse_id(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid ID format",
        )


def create_app(components: Optional[AppComponents] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        components: Pre-wired components (tests pass their own store).
                    Created with a fresh in-memory store if None.
    """
    app = FastAPI(title="Finance Tracker API")
    app.state.components = components or create_app_components()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "message": exc.message,
                "issues": [issue.model_dump() for issue in exc.issues],
            },
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request,
        exc: RequestValidationError,
    ):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "message": "Invalid request",
                "issues": [
                    {
                        "field": ".".join(str(part) for part in error["loc"]),
                        "issue_type": error["type"],
                        "message": error["msg"],
                        "severity": "error",
                    }
                    for error in exc.errors()
                ],
            },
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"message": str(exc)},
        )

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
        )

    @app.get("/")
    async def read_root():
        return {"message": "Finance Tracker API Running"}

    # -- recurring schedules -------------------------------------------------

    @app.post("/recurring", status_code=status.HTTP_201_CREATED)
    async def add_recurring_transaction(
        payload: ScheduleRequest,
        owner_id: str = Depends(get_owner_id),
        components: AppComponents = Depends(get_components),
    ):
        schedule = await components.schedules.create_schedule(owner_id, payload)
        views = await components.schedules.list_schedules(owner_id)
        view = next(v for v in views if v.id == schedule.id)
        return view.model_dump(mode="json", by_alias=True)

    @app.get("/recurring")
    async def get_recurring_transactions(
        owner_id: str = Depends(get_owner_id),
        components: AppComponents = Depends(get_components),
    ):
        views = await components.schedules.list_schedules(owner_id)
        return [view.model_dump(mode="json", by_alias=True) for view in views]

    @app.delete("/recurring/{schedule_id}")
    async def delete_recurring_transaction(
        schedule_id: str,
        owner_id: str = Depends(get_owner_id),
        components: AppComponents = Depends(get_components),
    ):
        await components.schedules.delete_schedule(owner_id, _parse_id(schedule_id))
        return {"message": "Recurring transaction schedule removed"}

    @app.post("/recurring/process")
    async def process_recurring_transactions(
        owner_id: str = Depends(get_owner_id),
        components: AppComponents = Depends(get_components),
    ):
        try:
            report = await components.processor.process(owner_id)
        except StorageError as e:
            logger.error("recurring_processing_setup_failed", owner_id=owner_id, error=str(e))
            await components.audit_logger.log_error(
                error_type="recurring_processing_setup",
                error_message=str(e),
                owner_id=owner_id,
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"message": "Server error during recurring processing setup."},
            )
        return {"message": report.message}

    # -- planning ------------------------------------------------------------

    @app.get("/projections")
    async def get_cash_flow_projection(
        duration: Optional[str] = Query(default=None),
        owner_id: str = Depends(get_owner_id),
        components: AppComponents = Depends(get_components),
    ):
        settings = components.settings.projection
        months = (
            settings.default_duration_months
            if duration is None
            else validate_horizon(duration, settings, restrict_to_allowed=True)
        )
        try:
            result = await components.projections.project(owner_id, months)
        except StorageError as e:
            logger.error("projection_failed", owner_id=owner_id, error=str(e))
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"message": "Server Error calculating projection"},
            )
        return result.model_dump(mode="json", by_alias=True)

    @app.post("/debt/calculate")
    async def calculate_debt_strategies(
        payload: DebtCalculateIn,
        owner_id: str = Depends(get_owner_id),
        components: AppComponents = Depends(get_components),
    ):
        try:
            plan = await components.debt.compare(owner_id, payload.extra_payment)
        except StorageError as e:
            logger.error("debt_calculation_failed", owner_id=owner_id, error=str(e))
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"message": "Error calculating debt strategies."},
            )
        return plan.model_dump(mode="json", by_alias=True, exclude={
            "snowball": {"hit_month_cap"},
            "avalanche": {"hit_month_cap"},
        })

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
