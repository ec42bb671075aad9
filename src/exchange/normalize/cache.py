"""Populate-once cache for slowly changing venue metadata."""

import logging
import threading
from collections.abc import Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OnceCell(Generic[T]):
    """
    Lazily computed value shared by concurrent callers.

    The loader runs at most once successfully; callers racing on first
    access block on the lock and all observe the same value. A failing
    loader leaves the cell empty so a later call can try again.
    """

    def __init__(self, loader: Callable[[], T], label: str = "metadata") -> None:
        self._loader = loader
        self._label = label
        self._value: T | None = None
        self._loaded = False
        self._lock = threading.Lock()

    def get(self) -> T:
        """Return the cached value, loading it on first access."""
        if self._loaded:
            return self._value  # type: ignore[return-value]
        with self._lock:
            if not self._loaded:
                logger.info(f"Loading {self._label}")
                self._value = self._loader()
                self._loaded = True
        return self._value  # type: ignore[return-value]

    @property
    def loaded(self) -> bool:
        """Whether the value has been populated."""
        return self._loaded
