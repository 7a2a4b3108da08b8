import json

import pytest

from app import create_app
from errors import NotFoundError, PersistenceError, StockError, ValidationError
from store import LocalKeyValueStore, LocalRecordStore

WEEK = "2025-06-08"


def test_pie_scenario_on_local_store(services):
    services.inventory.add_dessert("Pie", 5)
    first = services.orders.submit_order({"customer_name": "A", "meal_choice": "Soup", "dessert": "Pie"}, WEEK)
    assert first["dessert"] == "Pie"
    assert services.inventory.find_by_name("Pie")["remaining_stock"] == 4

    for _ in range(4):
        services.orders.submit_order({"customer_name": "B", "meal_choice": "Soup", "dessert": "Pie"}, WEEK)
    with pytest.raises(StockError):
        services.orders.submit_order({"customer_name": "C", "meal_choice": "Soup", "dessert": "Pie"}, WEEK)

    assert services.inventory.find_by_name("Pie")["remaining_stock"] == 0
    assert len(services.orders.list_orders(WEEK)) == 5


def test_lost_race_withdraws_order(services):
    pie = services.inventory.add_dessert("Pie", 1)
    # stock check sees 1, but another till sells it before the decrement
    real_check = services.inventory.check_stock

    def check_then_sell(name):
        found = real_check(name)
        services.store.decrement_if_positive("dessert_inventory", pie["id"], "remaining_stock")
        return found

    services.inventory.check_stock = check_then_sell
    with pytest.raises(StockError):
        services.orders.submit_order({"customer_name": "A", "meal_choice": "Soup", "dessert": "Pie"}, WEEK)
    assert services.orders.list_orders() == []
    assert services.inventory.find_by_name("Pie")["remaining_stock"] == 0


def test_state_survives_reopen(services, store_path):
    services.meals.add_option("Soup")
    services.fund.record_donation("Mary", 10, "")
    services.fund.record_usage("Tom", 4, None, "")

    reopened = LocalRecordStore(LocalKeyValueStore(store_path))
    assert [o["name"] for o in reopened.list("meal_options")] == ["Soup"]
    assert reopened.total("pay_it_forward_donations", "amount") == 10.0

    with open(store_path, encoding="utf-8") as fh:
        raw = json.load(fh)
    assert raw["next_ids"]["meal_options"] == 2


def test_balance_and_events(services):
    services.fund.record_donation("Mary", "10.00", "Harvest")
    services.fund.record_usage("Tom", "4.00", 1, "Lunch")
    assert services.fund.get_balance() == {"current_balance": 6.0, "total_donations": 10.0, "total_used": 4.0}
    kinds = [payload["kind"] for event, payload in services.events if event == "pay_it_forward.changed"]
    assert kinds == ["donation", "usage"]


def test_menu_duplicates_and_sort_order(services):
    services.sides.add_option("Chips")
    with pytest.raises(ValidationError):
        services.sides.add_option("Chips")
    assert services.sides.add_option("Peas")["sort_order"] == 2
    with pytest.raises(NotFoundError):
        services.sides.delete_option(42)


def test_edit_and_delete_move_stock(services):
    services.inventory.add_dessert("Pie", 3)
    services.inventory.add_dessert("Cake", 3)
    order = services.orders.submit_order({"customer_name": "A", "meal_choice": "Soup", "dessert": "Pie"}, WEEK)

    services.orders.update_order(order["id"], {"dessert": "Cake"})
    assert services.inventory.find_by_name("Pie")["remaining_stock"] == 3
    assert services.inventory.find_by_name("Cake")["remaining_stock"] == 2

    services.orders.update_order(order["id"], {"dessert": ""})
    assert services.inventory.find_by_name("Cake")["remaining_stock"] == 3

    services.orders.update_order(order["id"], {"dessert": "Pie"})
    services.orders.delete_order(order["id"])
    assert services.inventory.find_by_name("Pie")["remaining_stock"] == 3


def test_reset_all_stock(services):
    pie = services.inventory.add_dessert("Pie", 5)
    cake = services.inventory.add_dessert("Cake", 2)
    services.inventory.update_dessert(pie["id"], {"remaining_stock": 0})
    services.inventory.update_dessert(cake["id"], {"remaining_stock": -1})
    services.inventory.reset_all_stock()
    assert all(d["remaining_stock"] == d["starting_stock"] for d in services.inventory.list_desserts())


def test_snapshots_are_listed_newest_week_first(services):
    services.orders.submit_order({"customer_name": "A", "meal_choice": "Soup", "paid_amount": "2"}, "2025-06-01")
    services.orders.submit_order({"customer_name": "B", "meal_choice": "Soup", "paid_amount": "3"}, WEEK)
    services.attendance.create_snapshot("2025-06-01")
    services.attendance.create_snapshot(WEEK)
    weeks = [s["week"] for s in services.attendance.list_snapshots()]
    assert weeks == [WEEK, "2025-06-01"]
    assert services.attendance.list_snapshots(WEEK)[0]["total_revenue"] == 3.0


def test_unknown_entity_is_a_persistence_error(services):
    with pytest.raises(PersistenceError):
        services.store.list("reservations")


def test_app_runs_on_local_backend(tmp_path):
    path = str(tmp_path / "store.json")
    app = create_app(testing=True, config_overrides={"STORAGE_BACKEND": "local", "LOCAL_STORE_PATH": path})
    client = app.test_client()
    assert client.get("/api/health").get_json()["backend"] == "local"
    r = client.post("/api/orders", json={"customer_name": "Guest", "meal_choice": "Soup"})
    assert r.status_code == 201
    with open(path, encoding="utf-8") as fh:
        assert json.load(fh)["orders"][0]["customer_name"] == "Guest"


class FlakyStore(LocalRecordStore):
    """Local store whose stock decrement or usage insert fails on demand."""

    fail_decrement = False
    fail_usage_insert = False

    def decrement_if_positive(self, entity, record_id, field):
        if self.fail_decrement:
            raise PersistenceError("Failed to update dessert inventory.")
        return super().decrement_if_positive(entity, record_id, field)

    def insert(self, entity, values):
        if self.fail_usage_insert and entity == "pay_it_forward_usage":
            raise PersistenceError("Failed to save pay it forward usage.")
        return super().insert(entity, values)


@pytest.fixture
def flaky(store_path, make_services):
    return make_services(FlakyStore(LocalKeyValueStore(store_path)))


def test_failed_decrement_keeps_order(flaky):
    flaky.inventory.add_dessert("Pie", 3)
    flaky.store.fail_decrement = True
    with pytest.raises(PersistenceError):
        flaky.orders.submit_order({"customer_name": "A", "meal_choice": "Soup", "dessert": "Pie"}, WEEK)
    saved = flaky.orders.list_orders(WEEK)
    assert [o["dessert"] for o in saved] == ["Pie"]
    assert flaky.inventory.find_by_name("Pie")["remaining_stock"] == 3


def test_failed_usage_append_keeps_order(flaky):
    flaky.fund.record_donation("Mary", 10)
    flaky.store.fail_usage_insert = True
    with pytest.raises(PersistenceError):
        flaky.orders.submit_order({"customer_name": "A", "meal_choice": "Soup", "pay_it_forward_amount": "4"}, WEEK)
    saved = flaky.orders.list_orders(WEEK)
    assert len(saved) == 1
    assert saved[0]["pay_it_forward_amount"] == 4.0
    assert flaky.fund.recent_usage() == []
    assert flaky.fund.get_balance()["current_balance"] == 10.0
