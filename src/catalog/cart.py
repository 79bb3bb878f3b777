from decimal import Decimal
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, TypeAdapter


class CartProduct(BaseModel):
    id: str
    name: str
    price: Decimal
    description: str = ""
    image: str | None = None
    category: str | None = None


class CartItem(CartProduct):
    quantity: int = Field(default=1, ge=1)


_ITEMS = TypeAdapter(list[CartItem])


class CartStorage(Protocol):
    def load(self) -> list[CartItem]: ...

    def save(self, items: list[CartItem]) -> None: ...


class MemoryCartStorage:
    def __init__(self, items: list[CartItem] | None = None) -> None:
        self._items = list(items or [])

    def load(self) -> list[CartItem]:
        return [item.model_copy() for item in self._items]

    def save(self, items: list[CartItem]) -> None:
        self._items = [item.model_copy() for item in items]


class JsonFileCartStorage:
    """Persists the cart as a JSON array; a missing file is an empty cart."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> list[CartItem]:
        if not self.path.exists():
            return []
        return _ITEMS.validate_json(self.path.read_bytes())

    def save(self, items: list[CartItem]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(_ITEMS.dump_json(items))


class CartStore:
    """Shopping cart state; every mutation is written through to storage."""

    def __init__(self, storage: CartStorage) -> None:
        self._storage = storage
        self._items = storage.load()

    @property
    def items(self) -> list[CartItem]:
        return list(self._items)

    def _commit(self, items: list[CartItem]) -> None:
        self._items = items
        self._storage.save(items)

    def add(self, product: CartProduct) -> None:
        if any(item.id == product.id for item in self._items):
            self._commit(
                [
                    item.model_copy(update={"quantity": item.quantity + 1})
                    if item.id == product.id
                    else item
                    for item in self._items
                ]
            )
            return
        self._commit([*self._items, CartItem(**product.model_dump(), quantity=1)])

    def remove(self, product_id: str) -> None:
        self._commit([item for item in self._items if item.id != product_id])

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(product_id)
            return
        self._commit(
            [
                item.model_copy(update={"quantity": quantity})
                if item.id == product_id
                else item
                for item in self._items
            ]
        )

    def clear(self) -> None:
        self._commit([])

    def total_items(self) -> int:
        return sum(item.quantity for item in self._items)

    def total_price(self) -> Decimal:
        return sum((item.price * item.quantity for item in self._items), Decimal(0))
