import itertools
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

# Process-wide, never reset. Tokens are never reclaimed, so ids stay unique for the process lifetime.
_token_ids = itertools.count(1)


class Token(Generic[T]):
    """Opaque, globally unique key identifying a dependency.

    Two tokens are never equal, even when created with the same description.
    Equality and hashing are identity based, which makes tokens cheap dictionary keys.

    Attributes:
        id: Monotonic process-wide number assigned at creation.
        description: Optional human-readable description used only for diagnostics.

    Example:
        >>> LoggerToken: Token[Logger] = Token("Logger")
        >>> str(LoggerToken)
        'Token<Logger>'
    """

    __slots__ = ("id", "description")

    def __init__(self, description: Optional[str] = None) -> None:
        self.id = next(_token_ids)
        self.description = description

    def __str__(self) -> str:
        if self.description:
            return f"Token<{self.description}>"
        return f"Token<#{self.id}>"

    def __repr__(self) -> str:
        return str(self)


def new_token(description: Optional[str] = None) -> Token[Any]:
    """Create a fresh token.

    Args:
        description: Optional description for error messages.

    Returns:
        A token distinct from every other token in the process.
    """
    return Token(description)
