import logging
from typing import Dict, Type

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from core import errors

logger = logging.getLogger(__name__)

# most specific first; the first isinstance match wins
STATUS_BY_ERROR: Dict[Type[errors.AppError], int] = {
    errors.GatewayNotConfiguredError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    errors.UpstreamGatewayError: status.HTTP_503_SERVICE_UNAVAILABLE,
    errors.AdminAlreadyExistsError: status.HTTP_403_FORBIDDEN,
    errors.ForbiddenError: status.HTTP_403_FORBIDDEN,
    errors.AccountDisabledError: status.HTTP_401_UNAUTHORIZED,
    errors.InvalidCredentialError: status.HTTP_401_UNAUTHORIZED,
    errors.AuthenticationRequiredError: status.HTTP_401_UNAUTHORIZED,
    errors.NotFoundError: status.HTTP_404_NOT_FOUND,
    errors.DuplicateEmailError: status.HTTP_400_BAD_REQUEST,
    errors.ValidationError: status.HTTP_400_BAD_REQUEST,
    errors.InvalidSignatureError: status.HTTP_400_BAD_REQUEST,
    errors.UnknownOrderError: status.HTTP_400_BAD_REQUEST,
    errors.InvalidTransitionError: status.HTTP_400_BAD_REQUEST,
}


def status_for(exc: errors.AppError) -> int:
    for error_type, code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


async def app_error_handler(request: Request, exc: errors.AppError) -> JSONResponse:
    code = status_for(exc)
    body = {"error": exc.message}
    if isinstance(exc, errors.AccountDisabledError) and exc.reason:
        body["reason"] = exc.reason
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, errors.AuthenticationRequiredError) else None
    return JSONResponse(status_code=code, content=body, headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # only field locations: pydantic errors echo the input, which may be a password
    fields = sorted({".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "fields": fields},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": "Server error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(errors.AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
