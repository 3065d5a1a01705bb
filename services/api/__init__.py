"""HTTP surface: the single action endpoint."""

from .results import Failure, HandlerResult, Success, to_response
from .server import create_app, handle_action

__all__ = [
    "Failure",
    "HandlerResult",
    "Success",
    "to_response",
    "create_app",
    "handle_action",
]
