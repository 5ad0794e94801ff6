"""Actual vs budget reconciliation endpoint."""

import logging
from typing import Any, List

from fastapi import APIRouter, status
from pydantic import BaseModel

from xero_agent.api.deps import Context
from xero_agent.core.errors import AppException
from xero_agent.models.failures import SectionNotFound
from xero_agent.services.reconciler import ReconciliationRequest

logger = logging.getLogger(__name__)

router = APIRouter()


class ReconciliationResponse(BaseModel):
    """Successful comparison.

    ``data`` is a list of period records for a single section, or an
    object keyed by section title.
    """
    metric: str
    states: List[str]
    data: Any


@router.post("", response_model=ReconciliationResponse)
async def reconcile(request: ReconciliationRequest, context: Context) -> ReconciliationResponse:
    """Compare actual and budgeted values of a metric per period.

    Returns 404 when the metric matches no section and 502 when Xero
    could not supply a report.
    """
    result = await context.get_reconciler().reconcile(request)

    if not result.success:
        status_code = (
            status.HTTP_404_NOT_FOUND
            if isinstance(result.failure, SectionNotFound)
            else status.HTTP_502_BAD_GATEWAY
        )
        logger.warning(f"Reconciliation of '{request.metric}' failed: {result.failure.kind}")
        raise AppException.from_response(result.error_response(), status_code=status_code)

    return ReconciliationResponse(
        metric=request.metric,
        states=[s.value for s in result.states],
        data=result.to_payload(),
    )
