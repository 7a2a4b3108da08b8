"""
Project: Community Lunch Orders

Description:
Order workflow. Submitting an order runs, in this order:

    validate -> check dessert stock -> insert order -> take one dessert
    -> append Pay It Forward usage

The steps are separate store calls. The dessert decrement is conditional, so
an order that loses a race for the last dessert is deleted again and
rejected. A store failure after the insert is logged and surfaced, the
order itself is kept.
"""

import logging
from datetime import date, datetime, timedelta, timezone

from errors import LunchError, NotFoundError, PersistenceError, StockError, ValidationError
from pay_it_forward import parse_amount

logger = logging.getLogger(__name__)

ORDERS = "orders"
TEXT_FIELDS = ("dessert", "drink", "special_request", "table_number")
EDITABLE_FIELDS = {"customer_name", "meal_choice", "sub_items", "paid_amount"} | set(TEXT_FIELDS)


def current_week(today=None):
    """ISO date of the Sunday that starts the current service week."""
    today = today or date.today()
    return (today - timedelta(days=(today.weekday() + 1) % 7)).isoformat()


def _text(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def clean_form(form_data):
    """Normalise raw form values: trimmed strings, blanks to None, amounts to floats."""
    sub_items = form_data.get("sub_items") or []
    if isinstance(sub_items, str):
        sub_items = [sub_items]
    cleaned = {
        "customer_name": _text(form_data.get("customer_name")),
        "meal_choice": _text(form_data.get("meal_choice")),
        "sub_items": [s for s in (_text(s) for s in sub_items) if s],
        "paid_amount": parse_amount(form_data.get("paid_amount"), "Amount paid"),
        "pay_it_forward_amount": parse_amount(form_data.get("pay_it_forward_amount"), "Pay It Forward amount"),
    }
    for field in TEXT_FIELDS:
        cleaned[field] = _text(form_data.get(field))
    return cleaned


def validate_order(values):
    if not values.get("customer_name") or not values.get("meal_choice"):
        raise ValidationError("Please fill in customer name and meal choice.")


class OrderWorkflow:

    def __init__(self, store, inventory, fund, notify=None):
        self.store = store
        self.inventory = inventory
        self.fund = fund
        self.notify = notify or (lambda event, payload: None)

    def list_orders(self, week=None):
        filters = {"week": week} if week else None
        return self.store.list(ORDERS, filters=filters, order_by="created_at", descending=True)

    def get_order(self, order_id):
        order = self.store.get(ORDERS, order_id)
        if order is None:
            raise NotFoundError("Order not found.")
        return order

    def submit_order(self, form_data, week, mode="admin"):
        values = clean_form(form_data)
        validate_order(values)

        if mode == "public":
            values["paid_amount"] = 0.0
            values["pay_it_forward_amount"] = None
        elif form_data.get("volunteer_meal"):
            values["paid_amount"] = 0.0

        fund_amount = values["pay_it_forward_amount"]
        if fund_amount is not None and fund_amount < 0:
            raise ValidationError("Pay It Forward amount cannot be negative.")
        if not fund_amount:
            # zero means the fund is not used
            fund_amount = values["pay_it_forward_amount"] = None
        else:
            self.fund.ensure_available(fund_amount)

        dessert = None
        if values["dessert"]:
            try:
                dessert = self.inventory.check_stock(values["dessert"])
            except StockError:
                logger.warning("Rejected order for %s: %s out of stock", values["customer_name"], values["dessert"])
                raise

        values["week"] = week
        values["timestamp"] = datetime.now(timezone.utc).isoformat()
        order = self.store.insert(ORDERS, values)

        if dessert is not None:
            try:
                self.inventory.take_one(dessert)
            except StockError:
                # someone else took the last one between the check and now
                self.store.delete(ORDERS, order["id"])
                logger.warning("Order %s withdrawn, %s sold out meanwhile", order["id"], dessert["name"])
                raise
            except PersistenceError:
                logger.error("Order %s saved but %s stock was not decremented", order["id"], dessert["name"])
                raise

        if fund_amount:
            try:
                self.fund.record_usage(order["customer_name"], fund_amount, order["id"], "Used for order")
            except LunchError:
                logger.error("Order %s saved but Pay It Forward usage was not recorded", order["id"])
                raise

        logger.info("Order %s saved for %s (week %s)", order["id"], order["customer_name"], week)
        self.notify("order.created", {"order": order})
        return order

    def update_order(self, order_id, updates):
        order = self.get_order(order_id)
        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update {', '.join(sorted(unknown))}.")

        merged = clean_form({**order, **updates})
        validate_order(merged)
        values = {k: merged[k] for k in updates}

        previous = order["dessert"]
        changed = "dessert" in values and values["dessert"] != previous
        taken = None
        if changed and values["dessert"]:
            taken = self.inventory.check_stock(values["dessert"])
            self.inventory.take_one(taken)

        try:
            updated = self.store.update(ORDERS, order_id, values)
        except PersistenceError:
            if taken is not None:
                self.inventory.return_one(taken["name"])
            raise

        if changed and previous:
            self.inventory.return_one(previous)

        logger.info("Order %s updated", order_id)
        self.notify("order.updated", {"order": updated})
        return updated

    def record_payment(self, order_id, amount):
        self.get_order(order_id)
        updated = self.store.update(ORDERS, order_id, {"paid_amount": parse_amount(amount, "Amount paid")})
        self.notify("order.updated", {"order": updated})
        return updated

    def delete_order(self, order_id):
        order = self.get_order(order_id)
        self.store.delete(ORDERS, order_id)
        if order["dessert"]:
            self.inventory.return_one(order["dessert"])
        logger.info("Order %s deleted", order_id)
        self.notify("order.deleted", {"id": order_id})

    def clear_week(self, week):
        """Delete every order of the week. Stock comes back with the weekly reset."""
        orders = self.list_orders(week)
        for order in orders:
            self.store.delete(ORDERS, order["id"])
        logger.info("Cleared %d orders for week %s", len(orders), week)
        self.notify("order.cleared", {"week": week, "count": len(orders)})
        return len(orders)
