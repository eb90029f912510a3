"""
Execution Status Enum.

Outcome values recorded on audit log entries.
"""
from enum import Enum


class ExecutionStatus(str, Enum):
    """Execution status values."""
    
    SUCCESS = "success"
    FAILED = "failed"
