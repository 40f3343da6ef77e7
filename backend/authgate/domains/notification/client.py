"""
Notification service client - 通过外部通知服务发送模板邮件
"""

import logging
from typing import Any, Dict, Optional

import httpx

from authgate.common.exceptions import DependencyUnavailable

logger = logging.getLogger(__name__)

TEMPLATE_EMAIL_PATH = "/api/v1/notifications/send-template-email"
HEALTH_PATH = "/api/v1/health/simple"
HEALTH_TIMEOUT_SECONDS = 5.0


class NotificationError(DependencyUnavailable):
    default_message = "Email service temporarily unavailable"


class NotificationClient:
    """Thin async client for the outbound email service."""

    def __init__(self, base_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self._transport,
        )

    async def send_template_email(
        self,
        recipient_email: str,
        template_name: str,
        template_data: Dict[str, Any],
        priority: str = "normal",
    ) -> Dict[str, Any]:
        """发送模板邮件; any transport or non-2xx failure raises NotificationError."""
        payload = {
            "recipientEmail": recipient_email,
            "templateName": template_name,
            "templateData": template_data,
            "priority": priority,
        }
        try:
            async with self._client() as client:
                response = await client.post(TEMPLATE_EMAIL_PATH, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Notification service request failed: {e}")
            raise NotificationError() from e

        if response.status_code >= 400:
            logger.error(
                f"Notification service rejected {template_name}: "
                f"{response.status_code} {response.text[:200]}"
            )
            raise NotificationError()

        try:
            return response.json()
        except ValueError:
            return {}

    async def check_health(self) -> bool:
        """健康检查 (5s 超时)"""
        try:
            async with self._client(timeout=HEALTH_TIMEOUT_SECONDS) as client:
                response = await client.get(HEALTH_PATH)
            return response.status_code < 400
        except httpx.HTTPError as e:
            logger.error(f"Notification service health check failed: {e}")
            return False


_notification_client: Optional[NotificationClient] = None


def get_notification_client() -> NotificationClient:
    global _notification_client
    if _notification_client is None:
        from authgate.common.config import settings
        _notification_client = NotificationClient(
            base_url=settings.notification_service_url,
            timeout=settings.notification_timeout_seconds,
        )
    return _notification_client
