# Overview: Domain signals for best-effort side effects (notifications, webhooks).

"""
Signals are sent only after the owning transaction has committed (see
services.concurrency.after_commit). Receivers run one at a time; a receiver
that raises is logged and the remaining receivers still run. Nothing a
receiver does can roll back the financial state change that triggered it.
"""

from flask import current_app

from .extensions import signals

payment_model_selected = signals.signal("payment-model-selected")
payment_model_deactivated = signals.signal("payment-model-deactivated")
consignment_settled = signals.signal("consignment-settled")
sub_seller_assigned = signals.signal("sub-seller-assigned")
ticket_sold = signals.signal("ticket-sold")
staff_transfer_accepted = signals.signal("staff-transfer-accepted")


def emit(signal, **payload) -> None:
    """Send a signal to each receiver, isolating receiver failures."""
    sender = current_app._get_current_object()
    for receiver in signal.receivers_for(sender):
        try:
            receiver(sender, **payload)
        except Exception:
            current_app.logger.exception("Receiver %r for signal %s failed", receiver, signal.name)


def _log_signal(sender, **payload):
    sender.logger.info("Dispatching notification payload=%s", payload)


def connect_default_receivers() -> None:
    for sig in (payment_model_selected, payment_model_deactivated, consignment_settled, sub_seller_assigned,
                staff_transfer_accepted):
        sig.connect(_log_signal)
