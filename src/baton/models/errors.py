from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

This module defines custom exceptions for error handling in the models package.
"""


class ModelError(Exception):
    """Base exception for all model-backend errors."""

    pass


class ModelTimeoutError(ModelError):
    pass


class ModelRetryableError(ModelError):
    """
    Transient failures: rate limits, timeouts, provider issues, etc.
    These errors may be retried with backoff.
    """

    pass


class ModelInvalidResponseError(ModelError):
    """
    The backend returned a payload we couldn't normalize into items.
    """

    pass


class ModelConfigurationError(ModelError):
    pass
