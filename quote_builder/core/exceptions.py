from typing import Any, Dict, Iterable, List, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import logging


logger = logging.getLogger(__name__)


class QuoteEngineError(Exception):
    """Base error for the quote builder."""
    def __init__(self, message: str, *, code: str = "quote_error", status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class StepValidationError(QuoteEngineError):
    """A wizard step (or the whole draft) is missing required data."""
    def __init__(self, fields: Iterable[str], *, step: Optional[str] = None, message: Optional[str] = None) -> None:
        self.fields: List[str] = list(fields)
        self.step = step
        super().__init__(
            message or f"Missing required fields: {', '.join(self.fields)}",
            code="validation_error",
            status_code=422,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["fields"] = list(self.fields)
        if self.step:
            data["step"] = self.step
        return data


class PersistenceError(QuoteEngineError):
    """A create/update against the Quote Store did not succeed."""
    def __init__(self, message: str, *, status_code: Optional[int] = None, retryable: bool = True) -> None:
        super().__init__(message, code="persistence_error", status_code=status_code or 502)
        self.upstream_status = status_code
        self.retryable = retryable


class LifecycleError(QuoteEngineError):
    def __init__(self, message: str, *, current: Any = None, target: Any = None, code: str = "illegal_transition") -> None:
        super().__init__(message, code=code, status_code=409)
        self.current = current
        self.target = target


class IdentityInvariantViolation(QuoteEngineError):
    """A draft's server identity was about to be created twice or used before assignment."""
    def __init__(self, message: str) -> None:
        super().__init__(message, code="identity_violation", status_code=409)


class QuoteStoreError(QuoteEngineError):
    """Transport-level failure talking to the Quote Store."""
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message, code="quote_store_error", status_code=status_code or 502)
        self.upstream_status = status_code


class NotFoundError(QuoteEngineError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code="not_found", status_code=404)


class CatalogError(QuoteEngineError):
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message, code="catalog_error", status_code=status_code or 502)
        self.upstream_status = status_code


class ExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except QuoteEngineError as qe:
            logger.warning("QuoteEngineError: %s", qe.message)
            return JSONResponse(status_code=qe.status_code, content=qe.to_dict())
        except Exception:  # pragma: no cover
            logger.exception("Unhandled error")
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "Unexpected server error"},
        )
