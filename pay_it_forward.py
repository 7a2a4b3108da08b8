"""
Project: Community Lunch Orders

Description:
Pay It Forward fund: donations in, usage out. The balance is always read
back from the store totals rather than tracked here.
"""

import logging
import math

from errors import ValidationError

logger = logging.getLogger(__name__)

DONATIONS = "pay_it_forward_donations"
USAGE = "pay_it_forward_usage"


def parse_amount(value, label="Amount"):
    """Blank -> None, otherwise a float. Raises ValidationError on junk."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number.")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number.")
    if not math.isfinite(amount):
        raise ValidationError(f"{label} must be a number.")
    return round(amount, 2)


def _positive(value):
    amount = parse_amount(value)
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be a positive number.")
    return amount


class PayItForwardLedger:

    def __init__(self, store, notify=None, recent_limit=10):
        self.store = store
        self.notify = notify or (lambda event, payload: None)
        self.recent_limit = recent_limit

    def get_balance(self):
        donated = self.store.total(DONATIONS, "amount")
        used = self.store.total(USAGE, "amount")
        return {
            "current_balance": round(donated - used, 2),
            "total_donations": round(donated, 2),
            "total_used": round(used, 2),
        }

    def record_donation(self, donor, amount, note=""):
        donor = (donor or "").strip()
        if not donor:
            raise ValidationError("Please fill in donor name and amount.")
        amount = _positive(amount)
        donation = self.store.insert(DONATIONS, {"donor_name": donor, "amount": amount, "notes": note or ""})
        logger.info("Recorded donation of %.2f from %s", amount, donor)
        self._changed("donation", donation)
        return donation

    def record_usage(self, recipient, amount, order_id=None, note=""):
        recipient = (recipient or "").strip()
        if not recipient:
            raise ValidationError("Please fill in recipient name and amount.")
        amount = _positive(amount)
        self.ensure_available(amount)
        usage = self.store.insert(USAGE, {
            "recipient_name": recipient,
            "amount": amount,
            "notes": note or "",
            "order_id": order_id,
        })
        logger.info("Recorded fund usage of %.2f for %s", amount, recipient)
        self._changed("usage", usage)
        return usage

    def ensure_available(self, amount):
        balance = self.get_balance()["current_balance"]
        if amount > balance:
            raise ValidationError(f"Only {balance:.2f} is available in the Pay It Forward fund.")

    def recent_donations(self, limit=None):
        return self.store.list(DONATIONS, order_by="created_at", descending=True, limit=limit or self.recent_limit)

    def recent_usage(self, limit=None):
        return self.store.list(USAGE, order_by="created_at", descending=True, limit=limit or self.recent_limit)

    def _changed(self, kind, record):
        self.notify("pay_it_forward.changed", {"kind": kind, "record": record, "balance": self.get_balance()})
