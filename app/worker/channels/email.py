"""Email channel: jinja2 templates sent through the SendGrid v3 API."""

from typing import Any

import httpx
import structlog
from jinja2 import Environment, PackageLoader, TemplateError, select_autoescape

from app.domain.exceptions import ChannelDeliveryError
from app.worker.channels.base import ChannelResult, mock_message_id

logger = structlog.get_logger()

SENDGRID_API_URL = "https://api.sendgrid.com/v3"


def build_template_environment() -> Environment:
    """Template environment for the HTML emails shipped with the worker."""
    return Environment(
        loader=PackageLoader("app.worker", "templates"),
        autoescape=select_autoescape(["html"]),
    )


class EmailChannel:
    """Renders and sends transactional email."""

    name = "email"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        app_base_url: str,
        use_mock: bool = True,
        timeout: float = 10.0,
        base_url: str = SENDGRID_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.app_base_url = app_base_url.rstrip("/")
        self.use_mock = use_mock
        self.timeout = timeout
        self.base_url = base_url
        self.templates = build_template_environment()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def render(self, template: str, **context: Any) -> str:
        """Render ``templates/<template>.html`` with the app URL in scope."""
        return self.templates.get_template(f"{template}.html").render(
            app_url=self.app_base_url, **context
        )

    async def send_template(
        self, to: str, subject: str, template: str, **context: Any
    ) -> ChannelResult:
        """Render a template and send it.

        A template that fails to render is reported as a failed send.
        """
        try:
            html = self.render(template, **context)
        except TemplateError as e:
            logger.warning("Email template failed to render", template=template, error=str(e))
            return ChannelResult(self.name, False, error=f"{type(e).__name__}: {e}")
        return await self.send(to, subject, html)

    async def send(self, to: str, subject: str, html: str) -> ChannelResult:
        """Send one HTML email.

        Returns:
            Result carrying the SendGrid message id on success.
        """
        if self.use_mock:
            message_id = mock_message_id()
            logger.info("Email sent (mock)", to=to, subject=subject, message_id=message_id)
            return ChannelResult(self.name, True, message_id=message_id)

        try:
            message_id = await self._deliver(to, subject, html)
        except ChannelDeliveryError as e:
            logger.warning("Email delivery failed", to=to, subject=subject, reason=e.reason)
            return ChannelResult(self.name, False, error=e.reason)
        except Exception as e:
            logger.exception("Email delivery raised", to=to, subject=subject)
            return ChannelResult(self.name, False, error=f"{type(e).__name__}: {e}")

        logger.info("Email sent", to=to, subject=subject, message_id=message_id)
        return ChannelResult(self.name, True, message_id=message_id)

    async def _deliver(self, to: str, subject: str, html: str) -> str:
        client = await self._get_client()
        body = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_address, "name": "QuickPrint"},
            "subject": subject,
            "content": [{"type": "text/html", "value": html}],
        }
        try:
            response = await client.post("/mail/send", json=body)
        except httpx.HTTPError as e:
            raise ChannelDeliveryError(self.name, f"{type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            raise ChannelDeliveryError(
                self.name, f"HTTP {response.status_code}: {response.text}"
            )
        # SendGrid answers 202 with an empty body
        return response.headers.get("X-Message-Id", "")
