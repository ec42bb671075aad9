"""Uniform page shape for history endpoints."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """
    One page of history results.

    ``next_cursor`` is opaque to callers: page-numbered venues put the next
    page number there, offset venues the next offset and cursor venues the
    last id seen. Pass it back unchanged to fetch the following page.
    """

    items: tuple[T, ...] = ()
    has_more: bool = False
    next_cursor: str | None = Field(default=None, description="Opaque cursor")

    model_config = ConfigDict(frozen=True)

    def __len__(self) -> int:
        return len(self.items)
