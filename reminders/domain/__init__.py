"""Domain layer: reminder timing, phone rules and channel decision logic."""

from .email import send_email_notification
from .phone import normalize_phone_e164
from .sms import send_sms_notification
from .whatsapp import send_whatsapp_notification
from .window import WindowPhase, evaluate_trigger_window, is_in_window, minutes_until

__all__ = [
    "WindowPhase",
    "evaluate_trigger_window",
    "is_in_window",
    "minutes_until",
    "normalize_phone_e164",
    "send_email_notification",
    "send_sms_notification",
    "send_whatsapp_notification",
]
