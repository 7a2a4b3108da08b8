"""
Project: Community Lunch Orders

Description:
Meal and side-item option lists managed by admins. Orders reference
options by name, so deleting or renaming one never touches past orders.
"""

import logging

from errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MENU_KINDS = {"meals": "meal_options", "sides": "sub_item_options"}


class MenuConfiguration:

    def __init__(self, store, entity, notify=None):
        self.store = store
        self.entity = entity
        self.notify = notify or (lambda event, payload: None)

    @property
    def label(self):
        return "meal" if self.entity == "meal_options" else "extra item"

    def list_options(self):
        return self.store.list(self.entity, order_by="sort_order")

    def active_names(self):
        return [o["name"] for o in self.list_options() if o["active"]]

    def add_option(self, name):
        name = (name or "").strip()
        if not name:
            raise ValidationError(f"Please enter a {self.label} name")
        if name in self.active_names():
            raise ValidationError(f"This {self.label} already exists")
        options = self.list_options()
        max_order = max([o["sort_order"] or 0 for o in options] + [0])
        option = self.store.insert(self.entity, {"name": name, "active": True, "sort_order": max_order + 1})
        logger.info("Added %s option %s", self.label, name)
        self.notify("menu.created", {"table": self.entity, "option": option})
        return option

    def set_active(self, option_id, active):
        option = self.store.update(self.entity, option_id, {"active": bool(active)})
        if option is None:
            raise NotFoundError(f"{self.label.capitalize()} not found.")
        self.notify("menu.updated", {"table": self.entity, "option": option})
        return option

    def delete_option(self, option_id):
        if not self.store.delete(self.entity, option_id):
            raise NotFoundError(f"{self.label.capitalize()} not found.")
        self.notify("menu.deleted", {"table": self.entity, "id": option_id})
