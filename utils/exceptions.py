"""
Custom Exception Classes for the Diary Application

This module defines custom exceptions for better error handling and
categorization of failures across the application.
"""


class DiaryError(Exception):
    """Base exception for all diary application errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(DiaryError):
    """Raised when configuration validation fails or required settings are missing."""
    pass


# =============================================================================
# Backend Errors
# =============================================================================

class BackendError(DiaryError):
    """Base exception for errors reported by the hosted backend."""
    pass


class AuthenticationError(BackendError):
    """Raised when signing in or refreshing account metadata fails."""
    pass


class QueryError(BackendError):
    """Raised when a table read or write fails."""
    pass


class StorageError(BackendError):
    """Raised when an object storage upload fails."""
    pass


# =============================================================================
# Page-Level Errors
# =============================================================================

class AuthRequired(DiaryError):
    """Raised when an operation needs a signed-in user and there is no session."""
    pass


class JoinResolutionFailure(DiaryError):
    """Raised when author rows cannot be fetched for a feed."""
    pass


class MutationRejected(DiaryError):
    """Raised when the store refuses or silently skips a mutation."""
    pass


class UploadFailure(DiaryError):
    """Raised when any image in an attachment batch fails to upload."""
    pass
