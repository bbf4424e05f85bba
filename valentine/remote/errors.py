"""Normalize backend failures into user-facing messages.

ERROR_RULES is evaluated in order and the first matching predicate wins.
Unmatched messages pass through unchanged so nothing is ever reported as an
empty string.
"""

from typing import Callable

METHOD_UNAVAILABLE = "Backend method not available. Please refresh and try again."
CONNECTION_UNAVAILABLE = "Backend connection not available. Please refresh and try again."
LOGIN_REQUIRED = "Please log in to save your Valentine."
NOT_AUTHORIZED = (
    "You are not authorized to update this Valentine. "
    "Try re-authenticating or saving a new one."
)
UPDATED_ELSEWHERE = "This content was updated elsewhere. Please reload and try again."
SAVE_NOT_FOUND = "Valentine not found. Please check your save link and try again."
NOTHING_SAVED = "No saved Valentine found yet."
UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."

WRITE_TOKEN_MISSING = "Write token not found. Cannot update this save."

ErrorPredicate = Callable[[str], bool]


def message_contains(*fragments: str) -> ErrorPredicate:
    """Predicate matching a message that contains any of the fragments."""

    def predicate(message: str) -> bool:
        return any(fragment in message for fragment in fragments)

    return predicate


ERROR_RULES: list[tuple[ErrorPredicate, str]] = [
    (
        message_contains("not a function", "has no attribute", "method not available"),
        METHOD_UNAVAILABLE,
    ),
    (message_contains("connection not available"), CONNECTION_UNAVAILABLE),
    (message_contains("Authentication required", "sign in"), LOGIN_REQUIRED),
    (message_contains("Invalid write token", "not authorized"), NOT_AUTHORIZED),
    (message_contains("Version conflict", "Merge required"), UPDATED_ELSEWHERE),
    (message_contains("does not exist"), SAVE_NOT_FOUND),
    (message_contains("No global latest"), NOTHING_SAVED),
]


def normalize_message(message: str) -> str:
    for predicate, friendly in ERROR_RULES:
        if predicate(message):
            return friendly
    return message or UNEXPECTED_ERROR


def normalize_error(error: object) -> str:
    """Map any raised value to a non-empty user-facing message.

    Args:
        error: Whatever was caught; non-exceptions get the generic fallback

    Returns:
        Friendly message for known failures, otherwise the original message
    """
    if not isinstance(error, BaseException):
        return UNEXPECTED_ERROR
    return normalize_message(str(error))
