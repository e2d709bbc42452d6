"""Custom exceptions for terrain generation."""


class TerrainError(Exception):
    """Base exception for terrain generation errors."""

    pass


class InvalidFieldError(TerrainError):
    """Raised when a height field is empty or holds non-finite values."""

    pass


class InvariantViolationError(TerrainError):
    """Raised when a caller rejects a run whose metrics report failed invariants."""

    def __init__(self, failed: list[str]):
        self.failed = failed
        super().__init__(f"Invariants failed: {', '.join(failed)}")
