"""Request and response models for the store/fetch operations."""
from typing import Optional

from pydantic import BaseModel


class StoreRequest(BaseModel):
    key: str
    document: str


class StoreResponse(BaseModel):
    accepted: bool
    message: str


class FetchRequest(BaseModel):
    key: str


class FetchResponse(BaseModel):
    """Result of a fetch.

    ``document`` is set only when ``found`` is True; ``message`` explains a miss.
    """

    found: bool
    document: Optional[str] = None
    message: str = ""

    def to_payload(self) -> dict:
        if self.found:
            return {"found": True, "document": self.document}
        return {"found": False, "message": self.message}
