"""
Project: Community Lunch Orders

Description:
SQLAlchemy models backing the SQL record store. Table names match the
entity names the services use (see store.ENTITY_MODELS).
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default="admin")


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(120), nullable=False)
    week = db.Column(db.String(10), nullable=False, index=True)
    meal_choice = db.Column(db.String(120), nullable=False)
    sub_items = db.Column(db.JSON, default=list)
    dessert = db.Column(db.String(120), nullable=True)
    drink = db.Column(db.String(120), nullable=True)
    special_request = db.Column(db.Text, nullable=True)
    table_number = db.Column(db.String(20), nullable=True)
    paid_amount = db.Column(db.Float, nullable=True)
    pay_it_forward_amount = db.Column(db.Float, nullable=True)
    timestamp = db.Column(db.String(40), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "week": self.week,
            "meal_choice": self.meal_choice,
            "sub_items": list(self.sub_items or []),
            "dessert": self.dessert,
            "drink": self.drink,
            "special_request": self.special_request,
            "table_number": self.table_number,
            "paid_amount": self.paid_amount,
            "pay_it_forward_amount": self.pay_it_forward_amount,
            "timestamp": self.timestamp,
            "created_at": _iso(self.created_at),
        }


class DessertItem(db.Model):
    __tablename__ = "dessert_inventory"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    starting_stock = db.Column(db.Integer, nullable=False, default=0)
    remaining_stock = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "starting_stock": self.starting_stock, "remaining_stock": self.remaining_stock, "active": self.active, "updated_at": _iso(self.updated_at)}


class MealOption(db.Model):
    __tablename__ = "meal_options"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    active = db.Column(db.Boolean, default=True)
    sort_order = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "active": self.active, "sort_order": self.sort_order}


class SubItemOption(db.Model):
    __tablename__ = "sub_item_options"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    active = db.Column(db.Boolean, default=True)
    sort_order = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "active": self.active, "sort_order": self.sort_order}


class AttendanceRecord(db.Model):
    __tablename__ = "attendance"

    id = db.Column(db.Integer, primary_key=True)
    week = db.Column(db.String(10), nullable=False, index=True)
    attendees = db.Column(db.JSON, default=list)
    total_revenue = db.Column(db.Float, default=0.0)
    total_attendees = db.Column(db.Integer, default=0)
    unique_customers = db.Column(db.Integer, default=0)
    timestamp = db.Column(db.String(40), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "week": self.week,
            "attendees": list(self.attendees or []),
            "total_revenue": self.total_revenue,
            "total_attendees": self.total_attendees,
            "unique_customers": self.unique_customers,
            "timestamp": self.timestamp,
            "created_at": _iso(self.created_at),
        }


class PayItForwardDonation(db.Model):
    __tablename__ = "pay_it_forward_donations"

    id = db.Column(db.Integer, primary_key=True)
    donor_name = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    notes = db.Column(db.Text, default="")
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {"id": self.id, "donor_name": self.donor_name, "amount": self.amount, "notes": self.notes, "created_at": _iso(self.created_at)}


class PayItForwardUsage(db.Model):
    __tablename__ = "pay_it_forward_usage"

    id = db.Column(db.Integer, primary_key=True)
    recipient_name = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    notes = db.Column(db.Text, default="")
    order_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {"id": self.id, "recipient_name": self.recipient_name, "amount": self.amount, "notes": self.notes, "order_id": self.order_id, "created_at": _iso(self.created_at)}
