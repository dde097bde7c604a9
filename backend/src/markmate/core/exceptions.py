"""
Custom Exception Hierarchy
Domain and batch-processing exceptions
"""


class DomainException(Exception):
    """Base exception for all domain errors"""
    pass


class ConfigurationException(DomainException):
    """Required configuration is missing or invalid"""
    pass


class RepositoryException(DomainException):
    """Database operation failed"""
    pass


class ResourceNotFoundException(DomainException):
    """Requested resource not found"""

    def __init__(self, resource_type: str, identifier: str):
        self.resource_type = resource_type
        self.identifier = identifier
        super().__init__(f"{resource_type} not found: {identifier}")


class InvalidStateException(DomainException):
    """Resource is not in a state that allows the operation"""

    def __init__(self, resource_type: str, identifier: str, state: str):
        self.resource_type = resource_type
        self.identifier = identifier
        self.state = state
        super().__init__(f"{resource_type} {identifier} is {state}")


# Batch-level: no remote interaction is attempted

class BatchPreconditionError(DomainException):
    """Batch cannot be processed as configured"""
    pass


class CredentialNotFoundError(BatchPreconditionError):
    """Batch credential could not be resolved to a usable secret"""
    pass


# Batch-level: the remote session is unusable

class SessionError(DomainException):
    """Remote session could not be used"""
    pass


class AuthError(SessionError):
    """Remote system rejected the credential"""
    pass


class ConnectivityError(SessionError):
    """Remote system unreachable or in an unexpected state"""
    pass


class SessionRecoveryError(SessionError):
    """Session could not be returned to a known state after an item failure"""
    pass
