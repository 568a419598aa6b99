"""Channel senders for email, SMS, push and in-app delivery."""

from .base_provider import (
    ChannelSender,
    DeliveryResult,
    EmailProvider,
    InAppProvider,
    PushProvider,
    SMSProvider,
    build_senders,
)

__all__ = [
    "ChannelSender",
    "DeliveryResult",
    "EmailProvider",
    "InAppProvider",
    "PushProvider",
    "SMSProvider",
    "build_senders",
]
