"""Shared HTTP plumbing: response envelope, error handlers, request ids."""

from api.base import (
    APIError,
    APIMeta,
    APIResponse,
    success_response,
    error_response,
    ErrorCodes,
)
