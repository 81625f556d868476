"""
Custom Exception Classes for the Job Match API
"""
from typing import Dict, Any


class JobMatchBaseException(Exception):
    """Base exception for the Job Match API"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(JobMatchBaseException):
    """Raised when required ids are missing or a score is malformed"""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if field:
            details['field'] = field
        if value is not None:
            details['invalid_value'] = str(value)
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, **kwargs)


class AuthenticationError(JobMatchBaseException):
    """Raised when the request carries no identity"""

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, error_code="AUTHENTICATION_ERROR", **kwargs)


class AuthorizationError(JobMatchBaseException):
    """Raised when the caller does not own the requested resource"""

    def __init__(self, message: str = "Insufficient permissions", resource: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if resource:
            details['resource'] = resource
        super().__init__(message, error_code="AUTHORIZATION_ERROR", details=details, **kwargs)


class NotFoundError(JobMatchBaseException):
    """Raised when a resume, job or primary resume is missing"""

    def __init__(self, message: str, resource: str = None, resource_id: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if resource:
            details['resource'] = resource
        if resource_id:
            details['resource_id'] = resource_id
        super().__init__(message, error_code="NOT_FOUND", details=details, **kwargs)


class RetrievalError(JobMatchBaseException):
    """Raised when the vector index, cache or record store is unavailable"""

    def __init__(self, message: str, service_name: str = None, operation: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if service_name:
            details['service_name'] = service_name
        if operation:
            details['operation'] = operation
        super().__init__(message, error_code="RETRIEVAL_ERROR", details=details, **kwargs)


class ComputationError(JobMatchBaseException):
    """Raised when an LLM estimator fails or returns something unusable"""

    def __init__(self, message: str, model_name: str = None, estimator: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if model_name:
            details['model_name'] = model_name
        if estimator:
            details['estimator'] = estimator
        super().__init__(message, error_code="COMPUTATION_ERROR", details=details, **kwargs)


class ConfigurationError(JobMatchBaseException):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


STATUS_CODE_MAPPING = {
    ValidationError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    NotFoundError: 404,
    RetrievalError: 500,
    ComputationError: 500,
    ConfigurationError: 500,
}


def status_code_for(exc: JobMatchBaseException) -> int:
    """HTTP status for a custom exception (subclasses inherit their parent's code)"""
    for exc_type in type(exc).__mro__:
        if exc_type in STATUS_CODE_MAPPING:
            return STATUS_CODE_MAPPING[exc_type]
    return 500
