from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or missing input."""

    def __init__(self, message: str = "Invalid request") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InvalidReferenceError(ServiceError):
    """A referenced classroom or school belongs to a different tenant."""

    def __init__(self, message: str = "Referenced resource belongs to a different school") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class CapacityError(ServiceError):
    """Classroom has no free seat."""

    def __init__(self, message: str = "Classroom has reached maximum capacity") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class AuthenticationError(ServiceError):
    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, status.HTTP_401_UNAUTHORIZED)


class AuthorizationError(ServiceError):
    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


class NotFoundError(ServiceError):
    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class MethodNotAllowedError(ServiceError):
    def __init__(self, message: str = "Method not allowed") -> None:
        super().__init__(message, status.HTTP_405_METHOD_NOT_ALLOWED)


class ConflictError(ServiceError):
    def __init__(self, message: str = "Resource already exists") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class RateLimitedError(ServiceError):
    def __init__(self, message: str = "Too many requests") -> None:
        super().__init__(message, status.HTTP_429_TOO_MANY_REQUESTS)


class InternalError(ServiceError):
    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
