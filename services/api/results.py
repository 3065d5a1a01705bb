"""
Handler results and their single mapping to the wire format.
"""

from dataclasses import dataclass, field
from typing import Any, Union

from fastapi.responses import JSONResponse

from core.errors import BrokerError


@dataclass(frozen=True)
class Success:
    body: dict[str, Any] = field(default_factory=dict)
    status_code: int = 200


@dataclass(frozen=True)
class Failure:
    error: BrokerError


HandlerResult = Union[Success, Failure]


def to_response(result: HandlerResult) -> JSONResponse:
    """Map a HandlerResult to JSON. The only place errors become responses."""
    if isinstance(result, Success):
        return JSONResponse(result.body, status_code=result.status_code)

    error = result.error
    return JSONResponse(
        {"error": error.message, "code": error.error_code},
        status_code=error.status_code,
    )
