"""
Project: Community Lunch Orders

Description:
Record-store port used by every service. Records are plain dicts keyed by
entity name ("orders", "dessert_inventory", ...). Two implementations:

- SqlRecordStore: the canonical deployment, backed by the Flask-SQLAlchemy
  models in models.py.
- LocalRecordStore: the standalone deployment that keeps every entity list
  in one JSON key-value file, the way the old browser-storage version did.

Only equality filters, ordering and limits are supported, plus two
conditional stock helpers so a dessert can never be sold below zero.
"""

import json
import logging
import os
import threading
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from errors import PersistenceError
from models import (db, Order, DessertItem, MealOption, SubItemOption, AttendanceRecord,
                    PayItForwardDonation, PayItForwardUsage)

logger = logging.getLogger(__name__)

ENTITY_MODELS = {
    "orders": Order,
    "dessert_inventory": DessertItem,
    "meal_options": MealOption,
    "sub_item_options": SubItemOption,
    "attendance": AttendanceRecord,
    "pay_it_forward_donations": PayItForwardDonation,
    "pay_it_forward_usage": PayItForwardUsage,
}


class RecordStore:
    """Interface shared by the SQL and local stores."""

    def list(self, entity, filters=None, order_by=None, descending=False, limit=None):
        raise NotImplementedError

    def get(self, entity, record_id):
        raise NotImplementedError

    def insert(self, entity, values):
        raise NotImplementedError

    def update(self, entity, record_id, values):
        raise NotImplementedError

    def delete(self, entity, record_id):
        raise NotImplementedError

    def decrement_if_positive(self, entity, record_id, field):
        """Subtract 1 from `field` only when it is above zero. Returns True on success."""
        raise NotImplementedError

    def increment(self, entity, record_id, field, amount=1):
        raise NotImplementedError

    def total(self, entity, field, filters=None):
        """Sum of `field` over matching records, computed by the store."""
        raise NotImplementedError

    def first(self, entity, filters=None, order_by=None):
        rows = self.list(entity, filters=filters, order_by=order_by, limit=1)
        return rows[0] if rows else None


# ---------- SQL ----------
class SqlRecordStore(RecordStore):

    def _model(self, entity):
        try:
            return ENTITY_MODELS[entity]
        except KeyError:
            raise PersistenceError(f"Unknown entity {entity!r}")

    def _fail(self, action, entity, exc):
        db.session.rollback()
        logger.exception("Error %s %s", action, entity)
        raise PersistenceError(f"Failed to {action} {entity.replace('_', ' ')}.") from exc

    @staticmethod
    def _columns(model, values):
        cols = set(model.__table__.columns.keys())
        return {k: v for k, v in values.items() if k in cols and k != "id"}

    def list(self, entity, filters=None, order_by=None, descending=False, limit=None):
        model = self._model(entity)
        try:
            q = model.query.filter_by(**(filters or {}))
            if order_by:
                col = getattr(model, order_by)
                q = q.order_by(col.desc() if descending else col.asc())
            q = q.order_by(model.id.desc() if descending else model.id.asc())
            if limit:
                q = q.limit(limit)
            return [row.to_dict() for row in q.all()]
        except (SQLAlchemyError, AttributeError) as exc:
            self._fail("fetch", entity, exc)

    def get(self, entity, record_id):
        model = self._model(entity)
        try:
            row = db.session.get(model, record_id)
        except SQLAlchemyError as exc:
            self._fail("fetch", entity, exc)
        return row.to_dict() if row else None

    def insert(self, entity, values):
        model = self._model(entity)
        try:
            row = model(**self._columns(model, values))
            db.session.add(row)
            db.session.commit()
            return row.to_dict()
        except SQLAlchemyError as exc:
            self._fail("save", entity, exc)

    def update(self, entity, record_id, values):
        model = self._model(entity)
        try:
            row = db.session.get(model, record_id)
            if row is None:
                return None
            for k, v in self._columns(model, values).items():
                setattr(row, k, v)
            db.session.commit()
            return row.to_dict()
        except SQLAlchemyError as exc:
            self._fail("update", entity, exc)

    def delete(self, entity, record_id):
        model = self._model(entity)
        try:
            row = db.session.get(model, record_id)
            if row is None:
                return False
            db.session.delete(row)
            db.session.commit()
            return True
        except SQLAlchemyError as exc:
            self._fail("delete", entity, exc)

    def decrement_if_positive(self, entity, record_id, field):
        model = self._model(entity)
        col = getattr(model, field)
        try:
            changed = (model.query
                       .filter(model.id == record_id, col > 0)
                       .update({col: col - 1}, synchronize_session=False))
            db.session.commit()
        except SQLAlchemyError as exc:
            self._fail("update", entity, exc)
        db.session.expire_all()
        return changed == 1

    def increment(self, entity, record_id, field, amount=1):
        model = self._model(entity)
        col = getattr(model, field)
        try:
            changed = (model.query
                       .filter(model.id == record_id)
                       .update({col: col + amount}, synchronize_session=False))
            db.session.commit()
        except SQLAlchemyError as exc:
            self._fail("update", entity, exc)
        db.session.expire_all()
        return changed == 1

    def total(self, entity, field, filters=None):
        model = self._model(entity)
        try:
            q = db.session.query(func.coalesce(func.sum(getattr(model, field)), 0)).select_from(model)
            if filters:
                q = q.filter_by(**filters)
            return float(q.scalar() or 0)
        except SQLAlchemyError as exc:
            self._fail("fetch", entity, exc)


# ---------- LOCAL (JSON file) ----------
class LocalKeyValueStore:
    """get/set of named JSON values persisted to a single file."""

    def __init__(self, path):
        self.path = path
        self._data = None

    def _load(self):
        if self._data is None:
            if os.path.exists(self.path):
                with open(self.path, encoding="utf-8") as fh:
                    self._data = json.load(fh)
            else:
                self._data = {}
        return self._data

    def get(self, key, default=None):
        value = self._load().get(key)
        return default if value is None else value

    def set(self, key, value):
        data = self._load()
        data[key] = value
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
        os.replace(tmp, self.path)


class LocalRecordStore(RecordStore):

    def __init__(self, kv):
        self.kv = kv
        self._lock = threading.Lock()

    def _rows(self, entity):
        if entity not in ENTITY_MODELS:
            raise PersistenceError(f"Unknown entity {entity!r}")
        return self.kv.get(entity, [])

    def _save(self, entity, rows):
        try:
            self.kv.set(entity, rows)
        except (OSError, TypeError, ValueError) as exc:
            logger.exception("Error saving %s", entity)
            raise PersistenceError(f"Failed to save {entity.replace('_', ' ')}.") from exc

    def _next_id(self, entity):
        next_ids = self.kv.get("next_ids", {})
        new_id = next_ids.get(entity, 1)
        next_ids[entity] = new_id + 1
        self.kv.set("next_ids", next_ids)
        return new_id

    @staticmethod
    def _matches(row, filters):
        return all(row.get(k) == v for k, v in (filters or {}).items())

    def list(self, entity, filters=None, order_by=None, descending=False, limit=None):
        rows = [dict(r) for r in self._rows(entity) if self._matches(r, filters)]
        rows.sort(key=lambda r: r["id"], reverse=descending)
        if order_by:
            # None sorts first ascending
            rows.sort(key=lambda r: (r.get(order_by) is not None, r.get(order_by)), reverse=descending)
        return rows[:limit] if limit else rows

    def get(self, entity, record_id):
        for row in self._rows(entity):
            if row["id"] == record_id:
                return dict(row)
        return None

    def insert(self, entity, values):
        with self._lock:
            rows = self._rows(entity)
            row = dict(values)
            row["id"] = self._next_id(entity)
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            rows.append(row)
            self._save(entity, rows)
            return dict(row)

    def update(self, entity, record_id, values):
        with self._lock:
            rows = self._rows(entity)
            for row in rows:
                if row["id"] == record_id:
                    row.update({k: v for k, v in values.items() if k != "id"})
                    if entity == "dessert_inventory":
                        row["updated_at"] = datetime.now(timezone.utc).isoformat()
                    self._save(entity, rows)
                    return dict(row)
            return None

    def delete(self, entity, record_id):
        with self._lock:
            rows = self._rows(entity)
            kept = [r for r in rows if r["id"] != record_id]
            if len(kept) == len(rows):
                return False
            self._save(entity, kept)
            return True

    def decrement_if_positive(self, entity, record_id, field):
        with self._lock:
            rows = self._rows(entity)
            for row in rows:
                if row["id"] == record_id:
                    if (row.get(field) or 0) <= 0:
                        return False
                    row[field] = row[field] - 1
                    self._save(entity, rows)
                    return True
            return False

    def increment(self, entity, record_id, field, amount=1):
        with self._lock:
            rows = self._rows(entity)
            for row in rows:
                if row["id"] == record_id:
                    row[field] = (row.get(field) or 0) + amount
                    self._save(entity, rows)
                    return True
            return False

    def total(self, entity, field, filters=None):
        return float(sum(r.get(field) or 0 for r in self._rows(entity) if self._matches(r, filters)))


def create_store(config):
    """Pick the store implementation configured for this deployment."""
    backend = config.get("STORAGE_BACKEND", "sql")
    if backend == "local":
        logger.info("Using local JSON store at %s", config["LOCAL_STORE_PATH"])
        return LocalRecordStore(LocalKeyValueStore(config["LOCAL_STORE_PATH"]))
    if backend == "sql":
        return SqlRecordStore()
    raise ValueError(f"Unknown storage backend {backend!r}")
