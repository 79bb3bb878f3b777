from decimal import Decimal
from pathlib import Path

import pytest

from src.catalog.cart import (
    CartProduct,
    CartStore,
    JsonFileCartStorage,
    MemoryCartStorage,
)

MOTOR = CartProduct(id="motor-400", name="BULLDOZER 850", price=Decimal("1200"))
REMOTE = CartProduct(id="remote", name="Remote", price=Decimal("35.50"))


@pytest.fixture
def cart() -> CartStore:
    return CartStore(MemoryCartStorage())


class TestCartStore:
    def test_add_new_item(self, cart: CartStore) -> None:
        cart.add(MOTOR)

        assert [(i.id, i.quantity) for i in cart.items] == [("motor-400", 1)]

    def test_add_existing_item_increments(self, cart: CartStore) -> None:
        cart.add(MOTOR)
        cart.add(MOTOR)

        assert cart.items[0].quantity == 2
        assert len(cart.items) == 1

    def test_remove(self, cart: CartStore) -> None:
        cart.add(MOTOR)
        cart.add(REMOTE)

        cart.remove("motor-400")

        assert [i.id for i in cart.items] == ["remote"]

    def test_update_quantity(self, cart: CartStore) -> None:
        cart.add(REMOTE)

        cart.update_quantity("remote", 4)

        assert cart.items[0].quantity == 4

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_update_quantity_to_zero_or_less_removes(
        self, cart: CartStore, quantity: int
    ) -> None:
        cart.add(REMOTE)

        cart.update_quantity("remote", quantity)

        assert cart.items == []

    def test_totals(self, cart: CartStore) -> None:
        cart.add(MOTOR)
        cart.add(REMOTE)
        cart.update_quantity("remote", 2)

        assert cart.total_items() == 3
        assert cart.total_price() == Decimal("1271.00")

    def test_clear(self, cart: CartStore) -> None:
        cart.add(MOTOR)

        cart.clear()

        assert cart.items == []
        assert cart.total_items() == 0
        assert cart.total_price() == 0

    def test_mutations_are_saved(self) -> None:
        storage = MemoryCartStorage()
        CartStore(storage).add(MOTOR)

        assert [i.id for i in CartStore(storage).items] == ["motor-400"]


class TestJsonFileCartStorage:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert JsonFileCartStorage(tmp_path / "cart.json").load() == []

    def test_persists_between_stores(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "cart.json"
        cart = CartStore(JsonFileCartStorage(path))
        cart.add(MOTOR)
        cart.add(MOTOR)

        reloaded = CartStore(JsonFileCartStorage(path))

        assert reloaded.total_items() == 2
        assert reloaded.total_price() == Decimal("2400")
