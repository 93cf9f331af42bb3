"""
Tracker Adapters - Implementations of RemoteTrackerPort.
"""

from .callable_adapter import CallableTrackerAdapter, ToolClient

__all__ = ["CallableTrackerAdapter", "ToolClient"]
