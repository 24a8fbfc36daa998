"""
Domain exceptions shared by the API and the generation pipeline
"""


class VidifolioError(Exception):
    """Base class for handled application errors"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthenticationError(VidifolioError):
    """Missing, malformed, expired or invalid bearer credential"""

    pass


class NotFoundOrUnauthorized(VidifolioError):
    """Referenced record does not exist or is not owned by the caller"""

    pass


class InvalidArgument(VidifolioError):
    """Missing or malformed request field"""

    pass


class UpstreamFailure(VidifolioError):
    """Record store, blob store or generation provider call failed"""

    pass


class ProviderOperationError(UpstreamFailure):
    """Generation provider reported a failed operation"""

    def __init__(self, message: str, operation_id: str = ""):
        self.operation_id = operation_id
        super().__init__(message)


class OperationTimeoutError(UpstreamFailure):
    """Provider operation did not reach a terminal state in time"""

    def __init__(self, operation_id: str, timeout_s: float):
        self.operation_id = operation_id
        self.timeout_s = timeout_s
        super().__init__(
            f"Operation {operation_id} did not finish within {int(timeout_s)}s"
        )


class BlobStorageError(UpstreamFailure):
    """Blob store read or write failed"""

    pass
