"""Bounded polling of provider long-running operations."""

from .poller import OperationHandle, OperationPoller

__all__ = ["OperationHandle", "OperationPoller"]
