"""
Channel Senders.

One sender per delivery channel. Each resolves the recipient's address,
validates it and hands the rendered message to its gateway. Without a
configured gateway a sender logs the message instead (development mode).
"""

import abc
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from deadline_notifier.models.notification import Channel
from deadline_notifier.services.collaborators import ContactDirectory
from deadline_notifier.services.notification_types import RenderedMessage

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """Outcome of one send attempt."""

    success: bool
    provider: str
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def sent(cls, provider: str, message_id: Optional[str] = None) -> "DeliveryResult":
        return cls(success=True, provider=provider, message_id=message_id or f"{provider}_{uuid.uuid4().hex}")

    @classmethod
    def failed(cls, provider: str, error: str) -> "DeliveryResult":
        return cls(success=False, provider=provider, error=error)


class ChannelSender(abc.ABC):
    """Abstract base class for channel senders."""

    channel: Channel

    def __init__(self, config: Dict[str, Any], contacts: ContactDirectory):
        """
        Initialize channel sender.

        Args:
            config: Configuration for the provider
            contacts: Resolves recipient ids to channel addresses
        """
        self.config = config
        self.contacts = contacts
        self.is_initialized = False

    @property
    def name(self) -> str:
        return self.channel.value.lower()

    async def send(self, recipient_id: str, message: RenderedMessage) -> DeliveryResult:
        """
        Send a rendered message to a recipient.

        Args:
            recipient_id: Recipient identifier
            message: Message rendered for this sender's channel

        Returns:
            DeliveryResult with the outcome
        """
        address = self.contacts.address_for(recipient_id, self.channel)
        if not address:
            return DeliveryResult.failed(self.name, f"No {self.name} address for recipient {recipient_id}")
        if not self.validate_recipient(address):
            return DeliveryResult.failed(self.name, f"Invalid {self.name} address")
        return await self.deliver(address, message)

    @abc.abstractmethod
    async def deliver(self, address: str, message: RenderedMessage) -> DeliveryResult:
        """Hand the message to the channel's gateway."""

    @abc.abstractmethod
    def validate_recipient(self, address: str) -> bool:
        """
        Validate address format.

        Args:
            address: Email address, phone number or device token

        Returns:
            True if valid, False otherwise
        """

    async def initialize(self):
        """Initialize the provider (e.g., establish connections)."""
        self.is_initialized = True
        logger.info(f"{self.__class__.__name__} initialized")

    async def cleanup(self):
        """Clean up resources (e.g., close connections)."""
        self.is_initialized = False
        logger.info(f"{self.__class__.__name__} cleaned up")


class GatewaySender(ChannelSender):
    """Sender that posts JSON to an HTTP gateway when one is configured."""

    def __init__(self, config: Dict[str, Any], contacts: ContactDirectory):
        super().__init__(config, contacts)
        self.service_endpoint = config.get("service_endpoint")
        self.timeout = float(config.get("timeout", 10.0))

    @abc.abstractmethod
    def payload(self, address: str, message: RenderedMessage) -> Dict[str, Any]:
        """Gateway request body."""

    async def deliver(self, address: str, message: RenderedMessage) -> DeliveryResult:
        if not self.service_endpoint:
            logger.info(f"[DEV MODE] Would send {self.name} to {address}: {message.title}")
            logger.info(f"Message: {message.body}")
            return DeliveryResult.sent(self.name)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.service_endpoint, json=self.payload(address, message))
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} gateway rejected message for {address}: {str(e)}")
            return DeliveryResult.failed(self.name, str(e))

        message_id = None
        if response.headers.get("content-type", "").startswith("application/json"):
            message_id = response.json().get("id")
        return DeliveryResult.sent(self.name, message_id)


class EmailProvider(ChannelSender):
    """Email channel sender."""

    channel = Channel.EMAIL

    def __init__(self, config: Dict[str, Any], contacts: ContactDirectory):
        super().__init__(config, contacts)
        self.sender_email = config.get("sender_email", "noreply@example.com")

    async def deliver(self, address: str, message: RenderedMessage) -> DeliveryResult:
        """Send email notification."""
        # Mail transport is handled by the platform's mail relay; log the hand-off
        logger.info(f"Sending email from {self.sender_email} to {address}: {message.title}")
        logger.info(f"Message: {message.body}")
        return DeliveryResult.sent(self.name)

    def validate_recipient(self, address: str) -> bool:
        """Validate email address format."""
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return bool(re.match(pattern, address))


class SMSProvider(GatewaySender):
    """SMS channel sender."""

    channel = Channel.SMS

    def payload(self, address: str, message: RenderedMessage) -> Dict[str, Any]:
        return {"to": address, "body": message.body}

    def validate_recipient(self, address: str) -> bool:
        """Validate phone number format."""
        # Allows +, digits, parentheses, hyphens, spaces
        pattern = r'^[\+]?[1-9][\d\s\-\(\)]{7,15}$'
        return bool(re.match(pattern, address.strip()))


class PushProvider(GatewaySender):
    """Push channel sender."""

    channel = Channel.PUSH

    def payload(self, address: str, message: RenderedMessage) -> Dict[str, Any]:
        return {
            "token": address,
            "title": message.title,
            "body": message.body,
            "priority": message.priority.value,
            "url": message.action_url,
        }

    def validate_recipient(self, address: str) -> bool:
        """Validate device token format."""
        # Device tokens are opaque; anything shorter than 10 chars is garbage
        return len(address) >= 10


class InAppProvider(ChannelSender):
    """In-app channel. The stored NotificationRecord is the in-app item."""

    channel = Channel.IN_APP

    async def deliver(self, address: str, message: RenderedMessage) -> DeliveryResult:
        return DeliveryResult.sent(self.name)

    def validate_recipient(self, address: str) -> bool:
        return bool(address)


def build_senders(provider_config: Dict[str, Dict[str, Any]], contacts: ContactDirectory) -> Dict[Channel, ChannelSender]:
    """Create one sender per channel from the settings' provider config."""
    return {
        Channel.EMAIL: EmailProvider(provider_config.get("email", {}), contacts),
        Channel.SMS: SMSProvider(provider_config.get("sms", {}), contacts),
        Channel.PUSH: PushProvider(provider_config.get("push", {}), contacts),
        Channel.IN_APP: InAppProvider(provider_config.get("in_app", {}), contacts),
    }
