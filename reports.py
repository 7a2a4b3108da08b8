"""
Project: Community Lunch Orders

Description:
Weekly attendance and revenue figures, the print-view grouping by table,
attendance snapshots and the JSON export of a week.
"""

import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

NO_TABLE = "No Table"


def _money(value):
    return round(value, 2)


def week_orders(orders, week):
    return [o for o in orders if o.get("week") == week]


def list_weeks(orders):
    return sorted({o["week"] for o in orders if o.get("week")}, reverse=True)


def summarize_week(orders, week):
    """Totals for one week.

    Customers are grouped by exact name, so two people sharing a name count
    once. Popular meals are the top 3 by count; equal counts keep the order
    in which the meal was first seen.
    """
    selected = week_orders(orders, week)
    customers = {}
    meal_counts = {}
    revenue = 0.0
    for order in selected:
        amount = order.get("paid_amount") or 0
        revenue += amount
        name = order["customer_name"]
        if name not in customers:
            customers[name] = {
                "name": name,
                "orders": [],
                "order_count": 0,
                "total_spent": 0.0,
                "table_number": order.get("table_number"),
            }
        entry = customers[name]
        entry["orders"].append(order)
        entry["order_count"] += 1
        entry["total_spent"] += amount
        meal = order["meal_choice"]
        meal_counts[meal] = meal_counts.get(meal, 0) + 1

    for entry in customers.values():
        entry["total_spent"] = _money(entry["total_spent"])

    top_meals = sorted(meal_counts.items(), key=lambda kv: kv[1], reverse=True)[:3]
    total_orders = len(selected)
    return {
        "week": week,
        "total_orders": total_orders,
        "unique_customers": len(customers),
        "total_revenue": _money(revenue),
        "average_spend": _money(revenue / total_orders) if total_orders else 0.0,
        "per_customer": list(customers.values()),
        "top_meals": [{"meal": meal, "count": count} for meal, count in top_meals],
    }


def order_details(order):
    parts = list(order.get("sub_items") or [])
    if order.get("dessert"):
        parts.append(f"Dessert: {order['dessert']}")
    if order.get("drink"):
        parts.append(f"Drink: {order['drink']}")
    if order.get("special_request"):
        parts.append(f"Special: {order['special_request']}")
    return ", ".join(parts)


def _table_key(table):
    if table == NO_TABLE:
        return (2, 0, "")
    try:
        return (0, int(table), "")
    except ValueError:
        return (1, 0, table)


def group_orders_by_table(orders, week):
    """Print view: the week's orders grouped by table, numeric tables first,
    then any other labels, "No Table" last."""
    groups = {}
    for order in week_orders(orders, week):
        key = order.get("table_number") or NO_TABLE
        groups.setdefault(key, []).append({**order, "details": order_details(order)})
    return [{"table": table, "orders": groups[table]} for table in sorted(groups, key=_table_key)]


class AttendanceBook:
    """Stored attendance snapshots and the week export."""

    ENTITY = "attendance"

    def __init__(self, store, orders, inventory):
        self.store = store
        self.orders = orders
        self.inventory = inventory

    def summarize(self, week):
        # oldest first so ties in the meal ranking go to the earlier order
        return summarize_week(list(reversed(self.orders.list_orders(week))), week)

    def create_snapshot(self, week):
        summary = self.summarize(week)
        attendees = [
            {"name": c["name"], "total_spent": c["total_spent"], "orders": c["orders"]}
            for c in summary["per_customer"]
        ]
        record = self.store.insert(self.ENTITY, {
            "week": week,
            "attendees": attendees,
            "total_revenue": summary["total_revenue"],
            "total_attendees": summary["total_orders"],
            "unique_customers": summary["unique_customers"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        logger.info("Attendance snapshot %s saved for week %s", record["id"], week)
        return record

    def list_snapshots(self, week=None):
        filters = {"week": week} if week else None
        rows = self.store.list(self.ENTITY, filters=filters, order_by="created_at")
        return sorted(rows, key=lambda r: r["week"], reverse=True)

    def export_week(self, week):
        return {
            "orders": self.orders.list_orders(week),
            "attendance": self.list_snapshots(week),
            "dessert_inventory": self.inventory.list_desserts(),
            "export_date": datetime.now(timezone.utc).isoformat(),
            "week": week,
        }
