"""Invocation ID generation and context propagation.

Every CLI invocation gets a UUIDv4 invocation ID so that all log lines
emitted by one ``commit``/``ls``/``restore`` run can be grouped together,
even when several developers share a storage directory.

Example:
    >>> from libs.common.logging.context import generate_invocation_id, get_invocation_id
    >>> invocation_id = generate_invocation_id()
    >>> set_invocation_id(invocation_id)
    >>> get_invocation_id() == invocation_id
    True
"""

import contextvars
import uuid
from types import TracebackType

_invocation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "invocation_id", default=None
)


def generate_invocation_id() -> str:
    """Generate a new unique invocation ID (UUID v4 string)."""
    return str(uuid.uuid4())


def get_invocation_id() -> str | None:
    """Get the current invocation ID, or None if none has been set."""
    return _invocation_id_var.get()


def set_invocation_id(invocation_id: str) -> None:
    """Set the invocation ID for the current context.

    Args:
        invocation_id: The invocation ID to set

    Raises:
        ValueError: If invocation_id is empty or None
    """
    if not invocation_id:
        raise ValueError("Invocation ID cannot be empty")
    _invocation_id_var.set(invocation_id)


def clear_invocation_id() -> None:
    """Clear the invocation ID from the current context."""
    _invocation_id_var.set(None)


def get_or_create_invocation_id() -> str:
    """Get the existing invocation ID or generate and set a new one.

    Returns:
        Current or newly generated invocation ID

    Example:
        >>> clear_invocation_id()
        >>> invocation_id = get_or_create_invocation_id()
        >>> invocation_id == get_or_create_invocation_id()
        True
    """
    invocation_id = get_invocation_id()
    if invocation_id is None:
        invocation_id = generate_invocation_id()
        set_invocation_id(invocation_id)
    return invocation_id


class LogContext:
    """Context manager for a scoped invocation ID.

    Sets an invocation ID for the block and restores the previous value
    on exit.

    Example:
        >>> with LogContext("run-123"):
        ...     print(get_invocation_id())
        run-123
    """

    def __init__(self, invocation_id: str | None = None) -> None:
        self.invocation_id = invocation_id or generate_invocation_id()
        self.previous_invocation_id: str | None = None

    def __enter__(self) -> str:
        self.previous_invocation_id = get_invocation_id()
        set_invocation_id(self.invocation_id)
        return self.invocation_id

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self.previous_invocation_id is not None:
            set_invocation_id(self.previous_invocation_id)
        else:
            clear_invocation_id()
