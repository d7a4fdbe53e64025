"""Item pool: the shared, read-mostly set of parameterized items."""

from typing import Collection, Iterable, Iterator

from .errors import UnknownItemError
from .models import Item, ItemMetadata
from .parameters import (
    HeuristicParameterProvider,
    ItemParameterProvider,
    cognitive_level,
    validate_parameters,
)


class ItemPool:
    """Arena of immutable items keyed by id.

    The pool holds no per-session state. Sessions track which items they
    have administered themselves, so one pool can back many sessions.

    Usage:
        pool = ItemPool.from_metadata(metadata_rows)
        item = pool.get("q1")
        candidates = pool.available(used_ids={"q1"})
    """

    def __init__(self, provider: ItemParameterProvider | None = None) -> None:
        self.provider = provider or HeuristicParameterProvider()
        self._items: dict[str, Item] = {}

    @classmethod
    def from_metadata(
        cls,
        metadata: Iterable[ItemMetadata],
        provider: ItemParameterProvider | None = None,
    ) -> "ItemPool":
        pool = cls(provider)
        for row in metadata:
            pool.add(row)
        return pool

    def add(self, metadata: ItemMetadata) -> Item:
        """Parameterize an item through the provider and add it.

        Raises:
            ValueError: If an item with the same id is already in the pool.
        """
        self._check_new(metadata.id)
        params = validate_parameters(metadata.id, self.provider.parameters_for(metadata))
        item = Item(
            id=metadata.id,
            category=metadata.category,
            item_type=metadata.item_type,
            difficulty=metadata.difficulty,
            params=params,
            cognitive_level=cognitive_level(metadata),
            content=metadata.content,
        )
        self._items[item.id] = item
        return item

    def add_item(self, item: Item) -> None:
        """Add an already parameterized item as is."""
        self._check_new(item.id)
        validate_parameters(item.id, item.params)
        self._items[item.id] = item

    def _check_new(self, item_id: str) -> None:
        if item_id in self._items:
            raise ValueError(f"Duplicate item id in pool: {item_id}")

    def get(self, item_id: str) -> Item:
        try:
            return self._items[item_id]
        except KeyError:
            raise UnknownItemError(item_id) from None

    def available(self, used_ids: Collection[str]) -> list[Item]:
        """Items not in ``used_ids``, in insertion order."""
        return [item for item_id, item in self._items.items() if item_id not in used_ids]

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items.values())
