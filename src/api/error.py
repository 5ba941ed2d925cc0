"""HTTP error mapping for use case failures"""

from typing import Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from libs.result import Error

ERROR_STATUS_CODES = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "STATE_CONFLICT": status.HTTP_409_CONFLICT,
    "CONCURRENT_MODIFICATION": status.HTTP_409_CONFLICT,
    "SUBSCRIPTION_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ADD_ON_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "UPSTREAM_BILLING_ERROR": status.HTTP_502_BAD_GATEWAY,
    "RECONCILIATION_DEFERRED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "INTERNAL_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ClientError(Exception):
    """Raised by routes to return a use case Error as an HTTP response"""

    def __init__(self, error: Error, status_code: Optional[int] = None):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code or ERROR_STATUS_CODES.get(
            error.code, status.HTTP_400_BAD_REQUEST
        )


async def client_error_handler(request: Request, exc: ClientError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error.model_dump(exclude_none=True)},
    )
