"""SMS channel backed by the Twilio REST API."""

from decimal import Decimal

import httpx
import structlog

from app.domain.exceptions import ChannelDeliveryError
from app.worker.channels.base import ChannelResult, mock_message_id

logger = structlog.get_logger()

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


# ============================================================================
# Message Text
# ============================================================================


def order_created_text(order_number: str) -> str:
    return f"New order {order_number}. Open QuickPrint to accept."


def order_confirmed_text(order_number: str, shop_name: str) -> str:
    return f"Order {order_number} confirmed by {shop_name}."


def order_ready_text(order_number: str, shop_name: str) -> str:
    return f"Order {order_number} is ready for pickup at {shop_name}!"


def payment_received_text(amount: Decimal, order_number: str) -> str:
    return f"Payment of ₹{amount:.2f} received for {order_number}."


def order_cancelled_text(order_number: str, reason: str | None = None) -> str:
    text = f"Order {order_number} cancelled."
    if reason:
        text += f" Reason: {reason}"
    return text


def _mask(phone: str) -> str:
    return f"***{phone[-4:]}" if len(phone) > 4 else "***"


# ============================================================================
# Channel
# ============================================================================


class SmsChannel:
    """Sends text messages through Twilio.

    In mock mode the message is logged and reported as sent.
    """

    name = "sms"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        use_mock: bool = True,
        timeout: float = 10.0,
        base_url: str = TWILIO_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.use_mock = use_mock
        self.timeout = timeout
        self.base_url = base_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                auth=(self.account_sid, self.auth_token),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, to: str, body: str) -> ChannelResult:
        """Send one SMS.

        Args:
            to: Recipient phone number in E.164 form.
            body: Message text.

        Returns:
            Result carrying the provider message SID on success.
        """
        if self.use_mock:
            message_id = mock_message_id()
            logger.info("SMS sent (mock)", to=_mask(to), body=body, message_id=message_id)
            return ChannelResult(self.name, True, message_id=message_id)

        try:
            sid = await self._deliver(to, body)
        except ChannelDeliveryError as e:
            logger.warning("SMS delivery failed", to=_mask(to), reason=e.reason)
            return ChannelResult(self.name, False, error=e.reason)
        except Exception as e:
            logger.exception("SMS delivery raised", to=_mask(to))
            return ChannelResult(self.name, False, error=f"{type(e).__name__}: {e}")

        logger.info("SMS sent", to=_mask(to), message_id=sid)
        return ChannelResult(self.name, True, message_id=sid)

    async def _deliver(self, to: str, body: str) -> str:
        """Post the message to Twilio and return its SID.

        Raises:
            ChannelDeliveryError: On transport failure, a non-2xx response or
                a body that is not a JSON object.
        """
        client = await self._get_client()
        try:
            response = await client.post(
                f"/Accounts/{self.account_sid}/Messages.json",
                data={"To": to, "From": self.from_number, "Body": body},
            )
        except httpx.HTTPError as e:
            raise ChannelDeliveryError(self.name, f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise ChannelDeliveryError(
                self.name, f"HTTP {response.status_code}: {response.text}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise ChannelDeliveryError(self.name, f"Unreadable response: {response.text[:200]}") from e
        if not isinstance(data, dict):
            raise ChannelDeliveryError(self.name, "Response body is not a JSON object")
        return data.get("sid", "")
