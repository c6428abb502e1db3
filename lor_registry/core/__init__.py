"""
Registry core - student records, approver set and the recommendation workflow.
"""

from .errors import (
    RegistryError,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    InvalidStateError,
    StoreUnavailableError,
    ConfigurationError,
)
from .schema import StudentRecord, AuditEvent
from .store import IRegistryStore, InMemoryRegistryStore, SQLiteRegistryStore
from .workflow import OperationResult, WorkflowEngine

__all__ = [
    'RegistryError',
    'ValidationError',
    'NotFoundError',
    'UnauthorizedError',
    'InvalidStateError',
    'StoreUnavailableError',
    'ConfigurationError',
    'StudentRecord',
    'AuditEvent',
    'IRegistryStore',
    'InMemoryRegistryStore',
    'SQLiteRegistryStore',
    'OperationResult',
    'WorkflowEngine'
]
