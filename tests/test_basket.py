"""Tests for the basket aggregator and saved baskets."""

from decimal import Decimal

import pytest

from butchery.basket import Basket, BasketItem, SavedBasketStore
from butchery.settings import settings


def item(product_id="ribeye", price="40", quantity="0.5", **extra):
    return BasketItem(id=product_id, name=product_id.title(), price=Decimal(price), quantity=Decimal(quantity), **extra)


@pytest.fixture
def basket():
    return Basket(store=SavedBasketStore())


class TestTotals:
    def test_worked_example(self, basket):
        basket.add_item(item("ribeye", "40", "0.5"))
        basket.add_item(item("mince", "100", "1"))

        totals = basket.totals()
        assert totals.subtotal == Decimal("120.00")
        assert totals.vat == Decimal("6.00")
        assert totals.total == Decimal("126.00")

    @pytest.mark.parametrize("price,quantity", [("12.99", "0.75"), ("33.33", "1.25"), ("0.10", "0.25")])
    def test_total_is_subtotal_plus_rounded_vat(self, basket, price, quantity):
        basket.add_item(item(price=price, quantity=quantity))

        totals = basket.totals()
        assert totals.total == totals.subtotal + totals.vat
        assert totals.vat == (totals.subtotal * Decimal("0.05")).quantize(Decimal("0.01"), rounding="ROUND_HALF_UP")

    def test_derived_amounts_follow_every_mutation(self, basket):
        basket.add_item(item("ribeye", "40", "1"))
        assert basket.subtotal == Decimal("40")
        assert basket.vat == Decimal("2.00")

        basket.clear()
        assert basket.subtotal == 0
        assert basket.total == 0

    def test_empty_basket(self, basket):
        assert basket.totals() == (Decimal("0.00"), Decimal("0.00"), Decimal("0.00"))


class TestMutations:
    def test_same_product_merges_into_one_line(self, basket):
        basket.add_item(item("ribeye", quantity="0.5"))
        basket.add_item(item("ribeye", quantity="0.75"))

        assert len(basket) == 1
        assert basket.get("ribeye").quantity == Decimal("1.25")

    def test_update_quantity_below_increment_removes(self, basket):
        basket.add_item(item("ribeye", quantity="1"))
        basket.update_quantity("ribeye", Decimal("0.2"))

        assert "ribeye" not in basket
        assert basket.subtotal == 0

    def test_update_unknown_item_is_ignored(self, basket):
        basket.update_quantity("missing", 2)
        assert len(basket) == 0

    def test_increment_and_decrement_step_by_quarter(self, basket):
        basket.add_item(item("ribeye", quantity="0.5"))
        basket.increment("ribeye")
        assert basket.get("ribeye").quantity == Decimal("0.75")

        basket.decrement("ribeye")
        basket.decrement("ribeye")
        assert basket.get("ribeye").quantity == Decimal("0.25")

        basket.decrement("ribeye")
        assert "ribeye" not in basket

    def test_remove_item(self, basket):
        basket.add_item(item("ribeye"))
        basket.add_item(item("mince", "100", "1"))
        basket.remove_item("ribeye")

        assert [i.id for i in basket.items] == ["mince"]
        assert basket.item_count == Decimal("1")

    def test_added_item_is_a_snapshot(self, basket):
        original = item("ribeye", "40", "1")
        basket.add_item(original)
        original.price = Decimal("999")

        assert basket.get("ribeye").price == Decimal("40")


class TestSavedBaskets:
    def test_save_and_load(self, basket):
        basket.add_item(item("ribeye", quantity="1"))
        saved = basket.save("Weekend BBQ")

        basket.clear()
        basket.load(saved.id)

        assert basket.get("ribeye").quantity == Decimal("1")
        assert [b.name for b in basket.saved_baskets()] == ["Weekend BBQ"]

    def test_load_unknown_id_is_noop(self, basket):
        basket.add_item(item("ribeye"))
        basket.load("basket_missing")
        assert "ribeye" in basket

    def test_persists_to_file(self, tmp_path):
        path = tmp_path / "baskets.json"
        basket = Basket(store=SavedBasketStore(path))
        basket.add_item(item("lamb", "65", "2", name_ar="ضأن"))
        saved = basket.save("Eid")

        reloaded = SavedBasketStore(path)
        assert reloaded.get(saved.id).items[0].name_ar == "ضأن"

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "baskets.json"
        path.write_text("{not json", encoding="utf-8")
        assert SavedBasketStore(path).all() == []

    def test_default_store_uses_configured_path(self, tmp_path, monkeypatch):
        path = tmp_path / "saved.json"
        monkeypatch.setattr(settings, "SAVED_BASKETS_PATH", str(path))

        basket = Basket()
        basket.add_item(item("ribeye"))
        basket.save("Friday")

        assert [b.name for b in SavedBasketStore(path).all()] == ["Friday"]

    def test_default_store_in_memory_when_unset(self, monkeypatch):
        monkeypatch.setattr(settings, "SAVED_BASKETS_PATH", "")
        assert Basket().store.path is None
