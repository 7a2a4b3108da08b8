"""
Project: Community Lunch Orders

Description:
Dessert inventory: starting/remaining counts per dessert, weekly reset and
the stock helpers the order workflow uses.
"""

import logging

from errors import NotFoundError, StockError, ValidationError

logger = logging.getLogger(__name__)

ENTITY = "dessert_inventory"
EDITABLE_FIELDS = {"name", "starting_stock", "remaining_stock", "active"}


def _parse_count(value, field):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Please fill in {field.replace('_', ' ')}.")
    if isinstance(value, bool):
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} must be a whole number.")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} must be a whole number.")


class InventoryLedger:

    def __init__(self, store, notify=None):
        self.store = store
        self.notify = notify or (lambda event, payload: None)

    def list_desserts(self):
        return self.store.list(ENTITY, order_by="name")

    def available_desserts(self):
        return [d for d in self.list_desserts() if d["active"] and d["remaining_stock"] > 0]

    def get_dessert(self, dessert_id):
        dessert = self.store.get(ENTITY, dessert_id)
        if dessert is None:
            raise NotFoundError("Dessert not found.")
        return dessert

    def find_by_name(self, name):
        """The active dessert with this name, else any inactive one."""
        return (self.store.first(ENTITY, filters={"name": name, "active": True})
                or self.store.first(ENTITY, filters={"name": name}))

    def _ensure_unique(self, name, dessert_id=None):
        clash = self.store.first(ENTITY, filters={"name": name, "active": True})
        if clash is not None and clash["id"] != dessert_id:
            raise ValidationError(f"{name} is already in the inventory.")

    def add_dessert(self, name, starting_stock):
        name = (name or "").strip()
        if not name or starting_stock in (None, ""):
            raise ValidationError("Please fill in dessert name and starting stock.")
        self._ensure_unique(name)
        stock = _parse_count(starting_stock, "starting_stock")
        if stock < 0:
            raise ValidationError("Starting stock cannot be negative.")
        dessert = self.store.insert(ENTITY, {
            "name": name,
            "starting_stock": stock,
            "remaining_stock": stock,
            "active": True,
        })
        logger.info("Added dessert %s with %d in stock", name, stock)
        self.notify("dessert.created", {"dessert": dessert})
        return dessert

    def update_dessert(self, dessert_id, fields):
        """Overwrite any editable field. Stock values are not bounded; orders go
        through take_one instead."""
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update {', '.join(sorted(unknown))}.")
        values = {}
        for key, value in fields.items():
            if key in ("starting_stock", "remaining_stock"):
                values[key] = _parse_count(value, key)
            elif key == "active":
                values[key] = bool(value)
            else:
                value = str(value or "").strip()
                if not value:
                    raise ValidationError("Dessert name cannot be empty.")
                values[key] = value
        if "name" in values or values.get("active"):
            current = self.get_dessert(dessert_id)
            if values.get("active", current["active"]):
                self._ensure_unique(values.get("name", current["name"]), dessert_id)
        dessert = self.store.update(ENTITY, dessert_id, values)
        if dessert is None:
            raise NotFoundError("Dessert not found.")
        self.notify("dessert.updated", {"dessert": dessert})
        return dessert

    def delete_dessert(self, dessert_id):
        if not self.store.delete(ENTITY, dessert_id):
            raise NotFoundError("Dessert not found.")
        logger.info("Deleted dessert %s", dessert_id)
        self.notify("dessert.deleted", {"id": dessert_id})

    def reset_dessert(self, dessert_id):
        dessert = self.get_dessert(dessert_id)
        return self.update_dessert(dessert_id, {"remaining_stock": dessert["starting_stock"]})

    def reset_all_stock(self):
        # one update per item, no batch atomicity
        updated = []
        for dessert in self.list_desserts():
            updated.append(self.store.update(ENTITY, dessert["id"], {"remaining_stock": dessert["starting_stock"]}))
        logger.info("Reset stock for %d desserts", len(updated))
        self.notify("dessert.reset", {"desserts": updated})
        return updated

    # ---------- used by the order workflow ----------
    def check_stock(self, name):
        dessert = self.store.first(ENTITY, filters={"name": name, "active": True})
        if dessert is None or dessert["remaining_stock"] <= 0:
            raise StockError("Sorry, this dessert is out of stock.")
        return dessert

    def take_one(self, dessert):
        if not self.store.decrement_if_positive(ENTITY, dessert["id"], "remaining_stock"):
            raise StockError("Sorry, this dessert is out of stock.")

    def return_one(self, name):
        dessert = self.find_by_name(name)
        if dessert is None:
            logger.warning("Dessert %s no longer exists, stock not returned", name)
            return
        self.store.increment(ENTITY, dessert["id"], "remaining_stock")
