"""
Project: Community Lunch Orders

Description:
Shared fixtures: a Flask app on in-memory SQLite with a seeded admin user,
plain and logged-in test clients, and service objects running on the local
JSON store in a temporary directory.
"""

import os, sys
import pytest
from werkzeug.security import generate_password_hash

# --- Make sure project root is importable ---
TESTS_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(TESTS_DIR, os.pardir, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from app import create_app  # noqa: E402
from inventory import InventoryLedger  # noqa: E402
from menu import MenuConfiguration  # noqa: E402
from models import db, User  # noqa: E402
from orders import OrderWorkflow  # noqa: E402
from pay_it_forward import PayItForwardLedger  # noqa: E402
from reports import AttendanceBook  # noqa: E402
from store import LocalKeyValueStore, LocalRecordStore  # noqa: E402


@pytest.fixture
def app():
    app = create_app(testing=True)
    with app.app_context():
        db.drop_all()
        db.create_all()
        admin = User(username="admin", password_hash=generate_password_hash("password"), role="admin")
        db.session.add(admin)
        db.session.commit()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(app):
    c = app.test_client()
    resp = c.post("/login", json={"username": "admin", "password": "password"})
    assert resp.status_code == 200
    return c


class Services:
    """The service graph wired by hand, recording every change event."""

    def __init__(self, store):
        self.events = []
        self.store = store
        self.fund = PayItForwardLedger(store, self.notify)
        self.inventory = InventoryLedger(store, self.notify)
        self.orders = OrderWorkflow(store, self.inventory, self.fund, self.notify)
        self.attendance = AttendanceBook(store, self.orders, self.inventory)
        self.meals = MenuConfiguration(store, "meal_options", self.notify)
        self.sides = MenuConfiguration(store, "sub_item_options", self.notify)

    def notify(self, event, payload):
        self.events.append((event, payload))


@pytest.fixture
def store_path(tmp_path):
    return str(tmp_path / "lunch-store.json")


@pytest.fixture
def services(store_path):
    return Services(LocalRecordStore(LocalKeyValueStore(store_path)))


@pytest.fixture
def make_services():
    return Services
