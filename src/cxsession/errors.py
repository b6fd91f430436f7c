from __future__ import annotations

from dataclasses import dataclass


SAVING_ERROR = "saving error"
PUBLISHING_ERROR = "publishing error"


class NoCurrentSessionError(RuntimeError):
    pass


class PublishError(RuntimeError):
    def __init__(self, message: str, recoverable: bool = True, code: str | None = None) -> None:
        super().__init__(message)
        self.recoverable = recoverable
        self.code = code


@dataclass(frozen=True)
class PublishFeedbackMessage:
    text: str
    status: str
    is_error: bool = True
    recoverable: bool = True
