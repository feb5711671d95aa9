from __future__ import annotations

from typing import Generic, Iterable, TypeVar


T = TypeVar("T")


class EventRing(Generic[T]):
    """Keeps the last ``capacity`` items pushed, oldest evicted first."""

    def __init__(self, capacity: int) -> None:
        self._data: list[T | None] = [None] * capacity if capacity > 0 else []
        self._start = 0
        self._length = 0

    @property
    def capacity(self) -> int:
        return len(self._data)

    def __len__(self) -> int:
        return self._length

    def push(self, item: T) -> None:
        if not self._data:
            return
        size = len(self._data)
        self._data[(self._start + self._length) % size] = item
        if self._length < size:
            self._length += 1
            return
        self._start = (self._start + 1) % size

    def extend(self, items: Iterable[T]) -> None:
        for item in items:
            self.push(item)

    def items(self) -> list[T]:
        size = len(self._data)
        return [self._data[(self._start + i) % size] for i in range(self._length)]  # type: ignore[misc]
