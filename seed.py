"""
Project: Community Lunch Orders

Description:
Creates the admin account and the default menu so a fresh install is usable.
Run with `python seed.py`; safe to run more than once.
"""

import os

from werkzeug.security import generate_password_hash

from models import db, User

DEFAULT_MEALS = ["Soup of the Day", "Ham & Cheese Panini", "Roast Dinner", "Fish & Chips", "Jacket Potato", "Chicken Salad"]
DEFAULT_SIDES = ["Buttered Bread", "Side Salad", "Chips", "Coleslaw", "Garlic Bread", "Extra Vegetables"]
DEFAULT_DESSERTS = [("Apple Pie", 12), ("Chocolate Cake", 10), ("Fruit Salad", 8)]


def seed_defaults(app, admin_password="password"):
    services = app.extensions["lunch"]
    with app.app_context():
        if not User.query.filter_by(username="admin").first():
            admin = User(username="admin", password_hash=generate_password_hash(admin_password), role="admin")
            db.session.add(admin)
            db.session.commit()

        for kind, names in (("meals", DEFAULT_MEALS), ("sides", DEFAULT_SIDES)):
            menu = services["menus"][kind]
            if not menu.list_options():
                for name in names:
                    menu.add_option(name)

        inventory = services["inventory"]
        if not inventory.list_desserts():
            for name, stock in DEFAULT_DESSERTS:
                inventory.add_dessert(name, stock)


if __name__ == "__main__":
    from app import create_app

    password = os.environ.get("LUNCH_ADMIN_PASSWORD", "password")
    seed_defaults(create_app(), password)
    print(f"Seeded. Username=admin, Password={password}")
