from __future__ import annotations

from typing import Optional

from utils.exceptions import ErrorCode


class ApiError(Exception):
    """An error envelope (or transport failure) surfaced to the caller."""

    def __init__(self, status: Optional[int], code: str, message: str):
        super().__init__(f"{code} {message}")
        self.status = status
        self.code = code
        self.message = message

    @property
    def is_token_expired(self) -> bool:
        return self.status == 401 and self.code == ErrorCode.TOKEN_EXPIRED.value
