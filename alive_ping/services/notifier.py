"""
Notifier capability: deliver an escalation message to one contact.

send(contact_phone, user_name, user_phone) -> bool

Implementations may raise or hang; the escalation engine bounds every
call with a timeout and treats anything but True as a failed attempt.
"""

import asyncio

import httpx

from alive_ping.config import Settings
from alive_ping.infrastructure.observability.logging import get_logger
from alive_ping.services.errors import NotificationDeliveryFailed

logger = get_logger(__name__)

MESSAGE_TEMPLATE = (
    "【{sign_name}】{user_name} 已超过确认时间未响应，请尽快联系确认安全。如有紧急情况，请及时处理。"
)


def render_message(sign_name: str, user_name: str | None, user_phone: str) -> str:
    return MESSAGE_TEMPLATE.format(sign_name=sign_name, user_name=user_name or user_phone)


def mask_phone(phone: str) -> str:
    """Keep the first three and last four digits for logs."""
    if len(phone) <= 7:
        return "*" * len(phone)
    return f"{phone[:3]}{'*' * (len(phone) - 7)}{phone[-4:]}"


class LoggingNotifier:
    """Simulated delivery: logs the rendered message and reports success."""

    def __init__(self, sign_name: str, delay_seconds: float = 0.1):
        self.sign_name = sign_name
        self.delay_seconds = delay_seconds

    async def send(self, contact_phone: str, user_name: str | None, user_phone: str) -> bool:
        message = render_message(self.sign_name, user_name, user_phone)
        logger.info(
            "Simulated SMS delivery",
            contact_phone=mask_phone(contact_phone),
            message=message,
        )
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        return True

    async def close(self) -> None:
        return None


class HttpSmsNotifier:
    """
    Deliver through an HTTP SMS gateway.

    POSTs {"phone", "message", "template_params"} with a bearer API key.
    A delivery counts as successful on a 2xx response whose JSON body,
    if it carries a "code", reports "OK".
    """

    def __init__(
        self,
        gateway_url: str,
        api_key: str | None,
        sign_name: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.gateway_url = gateway_url
        self.api_key = api_key
        self.sign_name = sign_name
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def send(self, contact_phone: str, user_name: str | None, user_phone: str) -> bool:
        payload = {
            "phone": contact_phone,
            "sign_name": self.sign_name,
            "message": render_message(self.sign_name, user_name, user_phone),
            "template_params": {"userName": user_name or user_phone, "userPhone": user_phone},
        }

        try:
            response = await self._client.post(
                self.gateway_url, json=payload, headers=self._headers()
            )
            self._raise_for_delivery(response, contact_phone)

        except httpx.RequestError as e:
            logger.warning(
                "SMS gateway request error",
                contact_phone=mask_phone(contact_phone),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        except NotificationDeliveryFailed as e:
            logger.warning(
                "SMS gateway rejected message",
                contact_phone=mask_phone(contact_phone),
                reason=e.reason,
            )
            return False

        logger.info("SMS delivered", contact_phone=mask_phone(contact_phone))
        return True

    def _raise_for_delivery(self, response: httpx.Response, contact_phone: str) -> None:
        if not response.is_success:
            raise NotificationDeliveryFailed(contact_phone, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            return

        if isinstance(body, dict) and "code" in body and str(body["code"]).upper() != "OK":
            raise NotificationDeliveryFailed(
                contact_phone, f"gateway code {body['code']}: {body.get('message', '')}"
            )

    async def close(self) -> None:
        await self._client.aclose()


def build_notifier(config: Settings) -> LoggingNotifier | HttpSmsNotifier:
    """Pick the notifier backend from settings."""
    backend = config.NOTIFIER_BACKEND.strip().lower()

    if backend == "http":
        if not config.SMS_GATEWAY_URL:
            raise ValueError("NOTIFIER_BACKEND=http requires SMS_GATEWAY_URL")
        return HttpSmsNotifier(
            gateway_url=config.SMS_GATEWAY_URL,
            api_key=config.SMS_API_KEY,
            sign_name=config.SMS_SIGN_NAME,
            timeout_seconds=config.NOTIFIER_TIMEOUT_SECONDS,
        )

    if backend != "log":
        raise ValueError(f"Unknown NOTIFIER_BACKEND '{config.NOTIFIER_BACKEND}'")

    return LoggingNotifier(sign_name=config.SMS_SIGN_NAME)
