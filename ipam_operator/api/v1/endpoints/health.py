"""Health check endpoint."""

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ipam_operator import __version__
from ipam_operator.api.deps import StoreDep
from ipam_operator.schemas import HealthCheckResponse

router = APIRouter()


@router.get("", response_model=HealthCheckResponse)
def health_check(store: StoreDep) -> HealthCheckResponse:
    """
    Health check endpoint.

    Returns the status of the API and the object store's database.
    Useful for monitoring and orchestration systems.
    """
    try:
        with store.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database_status = "connected"
    except SQLAlchemyError as e:
        database_status = f"error: {str(e)}"

    return HealthCheckResponse(
        status="healthy" if database_status == "connected" else "degraded",
        version=__version__,
        database=database_status,
    )
