"""Errors shared across packages."""


class DraftsServiceError(Exception):
    """Non-2xx response from the Drafts Service."""

    def __init__(self, status_code: int, detail: str, *, method: str = "", path: str = ""):
        self.status_code = status_code
        self.detail = detail
        self.method = method
        self.path = path
        super().__init__(f"{method} {path} failed ({status_code}): {detail}".strip())

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404
