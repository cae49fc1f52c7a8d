from __future__ import annotations

from collections.abc import Hashable, Iterator
from typing import Generic, TypeVar

from app.modules.context.types import SceneSummaryRef

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class OrderedRegistry(Generic[K, V]):
    """Insertion-ordered unique collection; the first value seen for a key wins."""

    def __init__(self) -> None:
        self._items: dict[K, V] = {}

    def add(self, key: K, value: V) -> bool:
        if key in self._items:
            return False
        self._items[key] = value
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[V]:
        return iter(self._items.values())

    def values(self) -> tuple[V, ...]:
        return tuple(self._items.values())


class SceneSummaryRegistry:
    """Ordered scene-summary set keyed by scene id.

    Refs without a scene id (e.g. produced by an external mention resolver)
    fall back to title identity so they never duplicate an id-keyed ref with
    the same title.
    """

    def __init__(self) -> None:
        self._by_key: OrderedRegistry[tuple[str, str], SceneSummaryRef] = OrderedRegistry()
        self._titles: set[str] = set()

    def add(self, ref: SceneSummaryRef) -> bool:
        if ref.scene_id:
            key = ("id", str(ref.scene_id))
        else:
            if ref.title in self._titles:
                return False
            key = ("title", ref.title)
        if not self._by_key.add(key, ref):
            return False
        self._titles.add(ref.title)
        return True

    def __len__(self) -> int:
        return len(self._by_key)

    def values(self) -> tuple[SceneSummaryRef, ...]:
        return self._by_key.values()
