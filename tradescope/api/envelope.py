"""Uniform ``{success, data, error}`` responses for broker endpoints."""

from typing import Any, Callable, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from tradescope.core.brokers.credentials import NOT_FOUND, UNAUTHENTICATED
from tradescope.core.result import ServiceResult

ERROR_STATUS = {
    UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def envelope(
    result: ServiceResult,
    serialize: Optional[Callable[[Any], Any]] = None,
    success_status: int = status.HTTP_200_OK,
    failure_status: int = status.HTTP_400_BAD_REQUEST,
) -> JSONResponse:
    """Render a ServiceResult, mapping known failures to their HTTP status."""
    if not result.success:
        return JSONResponse(
            status_code=ERROR_STATUS.get(result.error, failure_status),
            content=jsonable_encoder(result.to_dict()),
        )

    data = serialize(result.data) if serialize and result.data is not None else result.data
    return JSONResponse(
        status_code=success_status,
        content=jsonable_encoder(ServiceResult.ok(data).to_dict()),
    )
