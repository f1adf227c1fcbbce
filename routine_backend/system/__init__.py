"""
Runtime control shared by embedding UI shells
"""

from .runtime import get_runtime_status, start_runtime, stop_runtime

__all__ = ["get_runtime_status", "start_runtime", "stop_runtime"]
