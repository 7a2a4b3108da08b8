"""
Project: Community Lunch Orders

Description:
Main application entry point. Initializes Flask, the record store and
Socket.IO, wires the services together and registers the JSON routes for
orders, dessert inventory, menu options, attendance reports and the
Pay It Forward fund.
"""

import json
import logging

from flask import Flask, Response, current_app, jsonify, request, session
from flask_socketio import SocketIO, emit
from werkzeug.security import check_password_hash

from config import Config, engine_options
from errors import AuthError, LunchError, NotFoundError
from inventory import InventoryLedger
from menu import MENU_KINDS, MenuConfiguration
from models import db, User
from orders import OrderWorkflow, current_week
from pay_it_forward import PayItForwardLedger
from reports import AttendanceBook, group_orders_by_table, list_weeks
from store import create_store

logger = logging.getLogger(__name__)

# Create SocketIO once (no app yet), then bind inside factory
socketio = SocketIO(cors_allowed_origins="*")


def notify(event, payload):
    socketio.emit("event", {"type": event, **payload})


def build_services(store, recent_limit=10):
    fund = PayItForwardLedger(store, notify, recent_limit=recent_limit)
    inventory = InventoryLedger(store, notify)
    orders = OrderWorkflow(store, inventory, fund, notify)
    return {
        "store": store,
        "fund": fund,
        "inventory": inventory,
        "orders": orders,
        "attendance": AttendanceBook(store, orders, inventory),
        "menus": {kind: MenuConfiguration(store, entity, notify) for kind, entity in MENU_KINDS.items()},
    }


def create_app(testing: bool = False, config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)

    if testing:
        app.config["TESTING"] = True
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        app.config["SOCKETIO_ASYNC_MODE"] = "threading"
    app.config.update(config_overrides or {})
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options(
        app.config["SQLALCHEMY_DATABASE_URI"], app.config["DB_TIMEOUT_SECONDS"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    socketio.init_app(app, async_mode=app.config["SOCKETIO_ASYNC_MODE"])  # <-- bind socketio to this app

    # admin accounts live in the database for both storage backends
    with app.app_context():
        db.create_all()

    services = build_services(create_store(app.config), app.config["RECENT_LIMIT"])
    app.extensions["lunch"] = services
    orders = services["orders"]
    inventory = services["inventory"]
    fund = services["fund"]
    attendance = services["attendance"]

    # --------- helpers ---------
    def require_login():
        if not session.get("user_id"):
            return jsonify({"ok": False, "error": "login_required"}), 401

    def require_admin():
        if not session.get("user_id"):
            return jsonify({"ok": False, "error": "login_required"}), 401
        u = db.session.get(User, session["user_id"])
        if not u or getattr(u, "role", "") != "admin":
            return jsonify({"ok": False, "error": "admin_only"}), 403

    def menu_for(kind):
        menu = services["menus"].get(kind)
        if menu is None:
            raise NotFoundError(f"Unknown menu {kind!r}")
        return menu

    def selected_week():
        return request.args.get("week") or current_week()

    @app.errorhandler(LunchError)
    def handle_lunch_error(err):
        return jsonify(err.to_dict()), err.status_code

    # --------- core routes ---------
    @app.get("/")
    def index():
        return jsonify({"message": "Community lunch orders backend is running", "week": current_week()})

    @app.post("/login")
    def login():
        data = request.form if request.form else (request.get_json(silent=True) or {})
        username = (data.get("username") or "").strip()
        password = data.get("password") or ""
        user = User.query.filter_by(username=username).first()
        if not user or not check_password_hash(user.password_hash, password):
            logger.warning("Failed login for %r", username)
            raise AuthError("Invalid login credentials")
        session["user_id"] = user.id
        session["username"] = user.username
        return jsonify({"ok": True})

    @app.post("/logout")
    def logout():
        session.clear()
        return jsonify({"ok": True})

    @app.get("/api/week/current")
    def week_current():
        return jsonify({"week": current_week()})

    # ---------- ORDERS ----------
    @app.get("/api/orders")
    def list_orders():
        resp = require_login()
        if resp:
            return resp
        return jsonify(orders.list_orders(request.args.get("week")))

    @app.post("/api/orders")
    def create_order():
        data = request.get_json(silent=True) or {}
        mode = "admin" if session.get("user_id") else "public"
        week = data.get("week") if mode == "admin" and data.get("week") else current_week()
        order = orders.submit_order(data, week, mode=mode)
        return jsonify(order), 201

    @app.put("/api/orders/<int:order_id>")
    def update_order(order_id):
        resp = require_login()
        if resp:
            return resp
        return jsonify(orders.update_order(order_id, request.get_json(silent=True) or {}))

    @app.post("/api/orders/<int:order_id>/pay")
    def pay_order(order_id):
        resp = require_login()
        if resp:
            return resp
        data = request.get_json(silent=True) or {}
        return jsonify(orders.record_payment(order_id, data.get("amount")))

    @app.delete("/api/orders/<int:order_id>")
    def delete_order(order_id):
        resp = require_admin()
        if resp:
            return resp
        orders.delete_order(order_id)
        return jsonify({"ok": True})

    @app.delete("/api/orders")
    def clear_week_orders():
        resp = require_admin()
        if resp:
            return resp
        week = selected_week()
        return jsonify({"ok": True, "week": week, "deleted": orders.clear_week(week)})

    # ---------- DESSERTS ----------
    @app.get("/api/desserts")
    def list_desserts():
        if request.args.get("available"):
            return jsonify(inventory.available_desserts())
        return jsonify(inventory.list_desserts())

    @app.post("/api/desserts")
    def create_dessert():
        resp = require_admin()
        if resp:
            return resp
        data = request.get_json(silent=True) or {}
        return jsonify(inventory.add_dessert(data.get("name"), data.get("starting_stock"))), 201

    @app.put("/api/desserts/<int:dessert_id>")
    def update_dessert(dessert_id):
        resp = require_admin()
        if resp:
            return resp
        return jsonify(inventory.update_dessert(dessert_id, request.get_json(silent=True) or {}))

    @app.delete("/api/desserts/<int:dessert_id>")
    def delete_dessert(dessert_id):
        resp = require_admin()
        if resp:
            return resp
        inventory.delete_dessert(dessert_id)
        return jsonify({"ok": True})

    @app.post("/api/desserts/<int:dessert_id>/reset")
    def reset_dessert(dessert_id):
        resp = require_admin()
        if resp:
            return resp
        return jsonify(inventory.reset_dessert(dessert_id))

    @app.post("/api/desserts/reset")
    def reset_all_desserts():
        resp = require_admin()
        if resp:
            return resp
        return jsonify(inventory.reset_all_stock())

    # ---------- MENU ----------
    @app.get("/api/menu/<kind>")
    def list_menu(kind):
        menu = menu_for(kind)
        if request.args.get("active"):
            return jsonify(menu.active_names())
        return jsonify(menu.list_options())

    @app.post("/api/menu/<kind>")
    def create_menu_option(kind):
        resp = require_admin()
        if resp:
            return resp
        data = request.get_json(silent=True) or {}
        return jsonify(menu_for(kind).add_option(data.get("name"))), 201

    @app.put("/api/menu/<kind>/<int:option_id>")
    def update_menu_option(kind, option_id):
        resp = require_admin()
        if resp:
            return resp
        data = request.get_json(silent=True) or {}
        return jsonify(menu_for(kind).set_active(option_id, data.get("active", True)))

    @app.delete("/api/menu/<kind>/<int:option_id>")
    def delete_menu_option(kind, option_id):
        resp = require_admin()
        if resp:
            return resp
        menu_for(kind).delete_option(option_id)
        return jsonify({"ok": True})

    # ---------- REPORTS ----------
    @app.get("/api/reports/attendance")
    def attendance_report():
        resp = require_login()
        if resp:
            return resp
        return jsonify(attendance.summarize(selected_week()))

    @app.get("/api/reports/weeks")
    def report_weeks():
        resp = require_login()
        if resp:
            return resp
        return jsonify(list_weeks(orders.list_orders()))

    @app.get("/api/reports/print")
    def print_view():
        resp = require_login()
        if resp:
            return resp
        week = selected_week()
        return jsonify({"week": week, "tables": group_orders_by_table(orders.list_orders(week), week)})

    @app.get("/api/attendance")
    def list_attendance():
        resp = require_login()
        if resp:
            return resp
        return jsonify(attendance.list_snapshots(request.args.get("week")))

    @app.post("/api/attendance")
    def create_attendance():
        resp = require_admin()
        if resp:
            return resp
        data = request.get_json(silent=True) or {}
        return jsonify(attendance.create_snapshot(data.get("week") or current_week())), 201

    @app.get("/api/export")
    def export_week():
        resp = require_admin()
        if resp:
            return resp
        week = selected_week()
        body = json.dumps(attendance.export_week(week), indent=2)
        return Response(body, mimetype="application/json",
                        headers={"Content-Disposition": f"attachment; filename=church-lunch-data-{week}.json"})

    # ---------- PAY IT FORWARD ----------
    @app.get("/api/pay-it-forward/balance")
    def pif_balance():
        return jsonify(fund.get_balance())

    @app.get("/api/pay-it-forward/donations")
    def list_donations():
        resp = require_login()
        if resp:
            return resp
        return jsonify(fund.recent_donations(request.args.get("limit", type=int)))

    @app.post("/api/pay-it-forward/donations")
    def create_donation():
        resp = require_admin()
        if resp:
            return resp
        data = request.get_json(silent=True) or {}
        return jsonify(fund.record_donation(data.get("donor_name"), data.get("amount"), data.get("notes"))), 201

    @app.get("/api/pay-it-forward/usage")
    def list_usage():
        resp = require_login()
        if resp:
            return resp
        return jsonify(fund.recent_usage(request.args.get("limit", type=int)))

    @app.post("/api/pay-it-forward/usage")
    def create_usage():
        resp = require_admin()
        if resp:
            return resp
        data = request.get_json(silent=True) or {}
        usage = fund.record_usage(data.get("recipient_name"), data.get("amount"), data.get("order_id"), data.get("notes"))
        return jsonify(usage), 201

    # ---------- HEALTH ----------
    @app.get("/api/health")
    def health():
        return jsonify({"ok": True, "status": "ok", "backend": app.config["STORAGE_BACKEND"]})

    return app


# ---------- SOCKET.IO ----------
@socketio.on("subscribe_balance")
def subscribe_balance():
    emit("pay_it_forward.balance", current_app.extensions["lunch"]["fund"].get_balance())


if __name__ == "__main__":
    logging.basicConfig(level=Config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    # Runs with eventlet server automatically
    socketio.run(app, host="0.0.0.0", port=Config.PORT, debug=True)
