"""Error taxonomy for the progression engine.

Every error is recoverable at the caller boundary: the engine never
returns a partial bracket or a partial standings rebuild, so prior state
is untouched when one of these is raised.
"""

from typing import List, Optional, Sequence


class ProgressionError(Exception):
    """Base exception for all progression engine errors."""

    pass


class IncompleteMatchError(ProgressionError):
    """Raised when a completed match cannot be scored (missing sets, open slot, no winner)."""

    def __init__(self, message: str, match_number: Optional[int] = None):
        super().__init__(message)
        self.match_number = match_number


class InsufficientQualifiersError(ProgressionError):
    """Raised when a category has fewer ranked participants than knockout slots."""

    def __init__(self, message: str, required: int = 0, available: int = 0):
        super().__init__(message)
        self.required = required
        self.available = available


class UnsupportedFormatError(ProgressionError):
    """Raised when a category format cannot produce a knockout stage."""

    pass


class UnresolvedEntityError(ProgressionError):
    """Raised (strict mode only) when placements cannot be attributed to an entity."""

    def __init__(self, message: str, participant_ids: Sequence[int] = ()):
        super().__init__(message)
        self.participant_ids: List[int] = list(participant_ids)


class DuplicateGenerationError(ProgressionError):
    """Raised when a knockout bracket already exists for the category.

    Benign: callers report "already generated" instead of failing.
    """

    def __init__(self, message: str, category_id: Optional[int] = None):
        super().__init__(message)
        self.category_id = category_id
