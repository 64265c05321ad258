"""
Streetwise API Client
Async client for the Campus Pulse+ Streetwise endpoints.

Every call carries the session cookie held in the client's cookie jar.
Non-2xx responses are classified into client exceptions; nothing is retried.
"""
import time
from typing import Optional, Dict, Any, List

import httpx
from pydantic import BaseModel, ValidationError as SchemaError

from streetwise.config import StreetwiseConfig
from streetwise.exceptions import (
    AuthorizationError,
    SessionExpiredError,
    TransportError,
)
from streetwise.logging_config import logger
from streetwise.models import (
    ChatMessage,
    ChatMessageCreate,
    CurrentUser,
    EscortRequest,
    EscortRequestCreate,
    ResourceId,
    SecurityReport,
    SecurityReportCreate,
    UniversitySettings,
    parse_list,
)


class StreetwiseAPIClient:
    """API client for the Streetwise backend"""

    def __init__(
        self,
        config: StreetwiseConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config
        self.base_url = config.api_base_url.rstrip('/')
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "StreetwiseAPIClient":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def open(self) -> None:
        if self._client is not None:
            return

        cookies = {}
        if self.config.session_cookie:
            cookies[self.config.session_cookie_name] = self.config.session_cookie

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            cookies=cookies,
            timeout=httpx.Timeout(self.config.request_timeout),
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self.open()
        return self._client

    async def _send(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """Send a request; transport failures become TransportError"""
        started = time.perf_counter()
        try:
            response = await self.client.request(method, path, json=body)
        except httpx.HTTPError as e:
            logger.warning(f"HTTP {method} {path} failed: {type(e).__name__}: {e}")
            raise TransportError("Network error", path=path) from e

        duration_ms = (time.perf_counter() - started) * 1000
        logger.log_request(method, path, response.status_code, duration_ms)
        return response

    async def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        """Send a request and return the decoded JSON body"""
        response = await self._send(method, path, body)

        if response.status_code == 401:
            raise SessionExpiredError("Please login again")
        if response.status_code == 403:
            raise AuthorizationError(path=path)
        if not response.is_success:
            raise TransportError(
                f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                path=path
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError("Invalid JSON response", status_code=response.status_code, path=path) from e

    def _parse(self, model: type, data: Any, path: str) -> BaseModel:
        """Validate a single-object body; a malformed one counts as a failed request"""
        try:
            return model.model_validate(data)
        except SchemaError as e:
            logger.warning(f"Invalid {model.__name__} from {path}: {e.error_count()} error(s)")
            raise TransportError("Invalid response", path=path) from e

    # ==================== Auth ====================

    async def get_current_user(self) -> Optional[CurrentUser]:
        """Session liveness check; None when the backend does not know us"""
        response = await self._send("GET", "/auth/current_user")
        if not response.is_success:
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        if not data or not isinstance(data, dict):
            return None
        return self._parse(CurrentUser, data, "/auth/current_user")

    # ==================== Security Reports ====================

    async def list_security_reports(self) -> List[SecurityReport]:
        data = await self._request("GET", "/api/security-reports")
        return parse_list(SecurityReport, data)

    async def create_security_report(self, report: SecurityReportCreate) -> Any:
        return await self._request("POST", "/api/security-reports", body=report.model_dump(mode="json"))

    async def list_messages(self, report_id: ResourceId) -> List[ChatMessage]:
        data = await self._request("GET", f"/api/security-reports/{report_id}/messages")
        return parse_list(ChatMessage, data)

    async def send_message(self, report_id: ResourceId, message: str) -> Any:
        body = ChatMessageCreate(message=message).model_dump()
        return await self._request("POST", f"/api/security-reports/{report_id}/messages", body=body)

    # ==================== Escort Requests ====================

    async def list_escort_requests(self) -> List[EscortRequest]:
        data = await self._request("GET", "/api/escort-requests")
        return parse_list(EscortRequest, data)

    async def create_escort_request(self, request: EscortRequestCreate) -> Any:
        return await self._request("POST", "/api/escort-requests", body=request.model_dump())

    # ==================== Settings ====================

    async def get_university_settings(self) -> UniversitySettings:
        data = await self._request("GET", "/api/university-settings")
        return self._parse(UniversitySettings, data or {}, "/api/university-settings")
