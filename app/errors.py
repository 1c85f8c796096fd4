"""Error taxonomy and the exception handlers installed on the app."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OmnideskError(Exception):
    code: str
    detail: str
    status_code: int = 400

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail)


class TenantError(OmnideskError):
    """Raised when a request or connection cannot be tied to a company."""

    def __init__(self, code: str, detail: str, status_code: int = 400):
        super().__init__(code=code, detail=detail, status_code=status_code)


class AuthError(OmnideskError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=401)


class AccessDeniedError(OmnideskError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=403)


async def _omnidesk_error_handler(request: Request, exc: OmnideskError) -> JSONResponse:
    logger.info(
        "request_rejected path=%s code=%s status=%s",
        request.url.path,
        exc.code,
        exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_validation_failed path=%s errors=%s", request.url.path, len(exc.errors()))
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "loc": list(error.get("loc", ())),
                "msg": error.get("msg"),
                "type": error.get("type"),
            }
        )
    return errors


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OmnideskError, _omnidesk_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
