"""Exceptions raised by the adaptive examination engine."""


class CATError(Exception):
    """Base class for all engine errors."""


class InvalidScoreError(CATError, ValueError):
    """A response score outside [0, 1] (or not a number at all)."""

    def __init__(self, score: object) -> None:
        super().__init__(f"Score must be a number in [0, 1], got {score!r}")
        self.score = score


class InvalidConfigError(CATError, ValueError):
    """Session configuration values that cannot describe a valid exam."""


class UnknownItemError(CATError, LookupError):
    """An item id that is not in the pool or was never administered."""

    def __init__(self, item_id: str, message: str | None = None) -> None:
        super().__init__(message or f"Unknown item: {item_id}")
        self.item_id = item_id


class DuplicateResponseError(CATError):
    """A second response for an item that has already been scored."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Item already answered: {item_id}")
        self.item_id = item_id


class SessionNotActiveError(CATError, RuntimeError):
    """The engine has no session to operate on."""


class MissingCalibrationError(CATError, LookupError):
    """No calibrated parameters exist for an item and there is no fallback."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"No calibrated parameters for item: {item_id}")
        self.item_id = item_id
