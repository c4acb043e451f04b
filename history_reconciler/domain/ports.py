"""Domain Ports - Abstract Contracts and Error Hierarchy.

This module defines the Port interfaces (abstract contracts) the core consumes
at its boundary, the Result type used by storage adapters, and the exception
hierarchy raised by the core.

Following Hexagonal Architecture, the Domain Core defines what it needs, not
how it's provided: the core never fetches, stores or prints anything itself.

Security Impact:
    - Shape errors propagate to the caller; field-level anomalies never raise
    - Storage failures are communicated via Result, not swallowed

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - Adapters (JSON file source, in-memory store, ...) implement these ports
    - The diagnostics sink is injected; the core's output does not depend on it
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, List, Optional, TypeVar, Union

if TYPE_CHECKING:
    from history_reconciler.domain.diagnostics import DiagnosticEvent
    from history_reconciler.domain.health_history import PatientHealthHistory

T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error information (only present if success=False)
        error_type: Type of error (StorageError, ...)
        error_details: Additional error context (patient_id, ...)

    Example:
        ```python
        result = store.save(history)
        if result.is_failure():
            raise StorageError(result.error)
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result."""
        return cls(success=True, value=value)

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error (e.g., "StorageError")
            error_details: Additional context

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        return self.success

    def is_failure(self) -> bool:
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class HealthHistoryError(Exception):
    """Base exception for all health-history errors."""
    pass


class ValidationError(HealthHistoryError):
    """Raised when a raw payload fails the minimal required shape check.

    Parsing aborts with no partial output.

    Attributes:
        source: Identifier of the payload (patient id when known)
        details: Validation messages (pydantic error list under "errors")
    """

    def __init__(self, message: str, source: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.source = source
        self.details = details or {}


class UnsupportedVersionError(HealthHistoryError):
    """Raised when an unregistered parser version is requested.

    Attributes:
        version: The requested version
        supported: Versions that are registered
    """

    def __init__(self, message: str, version: Optional[str] = None, supported: Optional[List[str]] = None):
        super().__init__(message)
        self.version = version
        self.supported = supported or []


class MalformedReconciliationInputError(HealthHistoryError):
    """Raised when a reconciliation input lacks the expected category structure.

    Attributes:
        category: Offending category, if the problem is category-specific
        details: Additional error context (which input, item index, ...)
    """

    def __init__(self, message: str, category: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.category = category
        self.details = details or {}


class HistoryNotFoundError(HealthHistoryError):
    """Raised when no stored history exists for a patient."""

    def __init__(self, message: str, patient_id: Optional[str] = None):
        super().__init__(message)
        self.patient_id = patient_id


class SourceNotFoundError(HealthHistoryError):
    """Raised when a raw payload source cannot be found or accessed."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class UnsupportedSourceError(HealthHistoryError):
    """Raised when a source exists but cannot be read as a payload.

    Attributes:
        source: The source identifier that is unsupported
        adapter: The adapter that cannot handle the source
    """

    def __init__(self, message: str, source: Optional[str] = None, adapter: Optional[str] = None):
        super().__init__(message)
        self.source = source
        self.adapter = adapter


class StorageError(HealthHistoryError):
    """Raised when the storage collaborator reports a failure."""

    def __init__(self, message: str, patient_id: Optional[str] = None):
        super().__init__(message)
        self.patient_id = patient_id


# ============================================================================
# Ports
# ============================================================================

class HistorySourcePort(ABC):
    """Abstract contract for third-party payload sources.

    The core does not perform the fetch; a source adapter returns the raw
    payload, which the History Parser then validates.
    """

    @abstractmethod
    def fetch(self, patient_id: str) -> Any:
        """Fetch the raw payload for a patient.

        Parameters:
            patient_id: Patient identifier

        Returns:
            Raw payload, expected shape ``{patientId, healthHistory}``

        Raises:
            SourceNotFoundError: If no payload exists for the patient
            UnsupportedSourceError: If the payload cannot be decoded
        """
        pass


class HistoryStoragePort(ABC):
    """Abstract contract for persisting canonical histories.

    Implementations own all concurrency control on the stored value; the
    application service serializes writers per patient on top of it.
    """

    @abstractmethod
    def get(self, patient_id: str) -> Optional['PatientHealthHistory']:
        """Return the stored history for a patient, or None."""
        pass

    @abstractmethod
    def save(self, history: 'PatientHealthHistory') -> Result[str]:
        """Insert or replace the stored history.

        Returns:
            Result[str]: Success with the patient id, or failure details
        """
        pass

    @abstractmethod
    def list_patient_ids(self) -> List[str]:
        pass

    def close(self) -> None:
        """Release resources (optional)."""
        return None


class DiagnosticsSink(ABC):
    """Abstract contract for the diagnostics channel.

    The core emits structured events for new categories, data-quality issues
    and parse/reconciliation failures. Nothing in the core depends on the
    events being observed.
    """

    @abstractmethod
    def emit(self, event: 'DiagnosticEvent') -> None:
        pass
