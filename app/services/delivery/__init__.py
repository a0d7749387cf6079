from app.services.delivery.base import DeliveryChannel, DeliveryError, RenderedMessage
from app.services.delivery.factory import build_delivery_channel
from app.services.delivery.templates import render_contact_message

__all__ = [
    "DeliveryChannel",
    "DeliveryError",
    "RenderedMessage",
    "build_delivery_channel",
    "render_contact_message",
]
