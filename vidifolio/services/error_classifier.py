"""
Error Classifier - Turn pipeline exceptions into persisted failure details
"""

import asyncio
from typing import Dict, Any
import httpx

from vidifolio.core.errors import (
    BlobStorageError,
    OperationTimeoutError,
    ProviderOperationError,
    UpstreamFailure,
)


class ErrorClassifier:
    """
    Classify errors for user-facing messages stored on FAILED videos
    """

    # Error codes
    ERROR_NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    ERROR_NETWORK_ERROR = "NETWORK_ERROR"
    ERROR_PROVIDER_AUTH = "PROVIDER_AUTH"
    ERROR_PROVIDER_RATE_LIMIT = "PROVIDER_RATE_LIMIT"
    ERROR_PROVIDER_INVALID_PARAM = "PROVIDER_INVALID_PARAM"
    ERROR_PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    ERROR_PROVIDER_OPERATION_FAILED = "PROVIDER_OPERATION_FAILED"
    ERROR_OPERATION_TIMEOUT = "OPERATION_TIMEOUT"
    ERROR_STORAGE = "STORAGE_ERROR"
    ERROR_UPSTREAM = "UPSTREAM_FAILURE"
    ERROR_UNKNOWN = "UNKNOWN_ERROR"

    def classify(self, error: Exception) -> Dict[str, Any]:
        """
        Classify error with user-facing message

        Args:
            error: Exception to classify

        Returns:
            Dict with code, message, retryable
        """
        if isinstance(error, OperationTimeoutError):
            return {
                "code": self.ERROR_OPERATION_TIMEOUT,
                "message": f"Video generation timed out: {error.message}",
                "retryable": True,
            }

        if isinstance(error, ProviderOperationError):
            return {
                "code": self.ERROR_PROVIDER_OPERATION_FAILED,
                "message": error.message,
                "retryable": False,
            }

        if isinstance(error, BlobStorageError):
            return {
                "code": self.ERROR_STORAGE,
                "message": error.message,
                "retryable": True,
            }

        if isinstance(error, UpstreamFailure):
            return {
                "code": self.ERROR_UPSTREAM,
                "message": error.message,
                "retryable": True,
            }

        if isinstance(error, (httpx.TimeoutException, asyncio.TimeoutError)):
            return {
                "code": self.ERROR_NETWORK_TIMEOUT,
                "message": "Network timeout while contacting the video generation service",
                "retryable": True,
            }

        if isinstance(error, httpx.NetworkError):
            return {
                "code": self.ERROR_NETWORK_ERROR,
                "message": "Network error occurred",
                "retryable": True,
            }

        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code

            if status in (401, 403):
                return {
                    "code": self.ERROR_PROVIDER_AUTH,
                    "message": f"Video download was rejected ({status})",
                    "retryable": False,
                }

            if status == 429:
                return {
                    "code": self.ERROR_PROVIDER_RATE_LIMIT,
                    "message": "Rate limit exceeded for video generation service",
                    "retryable": True,
                }

            if 400 <= status < 500:
                return {
                    "code": self.ERROR_PROVIDER_INVALID_PARAM,
                    "message": f"Video download failed ({status})",
                    "retryable": False,
                }

            return {
                "code": self.ERROR_PROVIDER_UNAVAILABLE,
                "message": "Video generation service temporarily unavailable",
                "retryable": True,
            }

        # Default - unknown error
        return {
            "code": self.ERROR_UNKNOWN,
            "message": f"An unexpected error occurred: {str(error) or type(error).__name__}",
            "retryable": False,
        }
