"""
Microsoft Graph API Client
Handles client-credentials authentication and paginated reads against Graph
(Intune managed devices, Entra ID users, subscribed SKUs)
"""
import httpx
import structlog
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, List, Any
from urllib.parse import quote

from ..config import settings


logger = structlog.get_logger(__name__)

DEVICE_FIELDS = [
    "id", "deviceName", "serialNumber", "operatingSystem", "osVersion", "lastSyncDateTime",
    "totalStorageSpaceInBytes", "freeStorageSpaceInBytes",
    "userId", "userDisplayName", "userPrincipalName",
    "manufacturer", "model", "complianceState", "isEncrypted", "azureADDeviceId",
    "enrolledDateTime", "managedDeviceOwnerType",
    "physicalMemoryInBytes", "processorArchitecture",
]

USER_FIELDS = [
    "id", "displayName", "employeeId", "createdDateTime", "userPrincipalName",
    "department", "jobTitle", "accountEnabled",
]


class GraphError(Exception):
    """Base class for directory client failures"""


class GraphConfigError(GraphError):
    """Tenant/client credentials are not configured"""


class GraphAuthError(GraphError):
    """Token endpoint rejected the grant or could not be reached"""

    def __init__(self, status_code: Optional[int], body: str):
        self.status_code = status_code
        self.body = body
        if status_code is None:
            super().__init__(f"Failed to get access token: {body}")
        else:
            super().__init__(f"Failed to get access token ({status_code}): {body}")


class GraphUpstreamError(GraphError):
    """Graph returned a non-2xx or undecodable response, or the request never completed"""

    def __init__(self, status_code: Optional[int], body: str, url: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        self.url = url
        if status_code is None:
            super().__init__(f"Graph request failed: {body}")
        else:
            super().__init__(f"Graph request failed ({status_code}): {body}")


class GraphClient:
    """Client for reading from the Microsoft Graph API"""

    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.tenant_id = tenant_id or settings.graph_app_tenant_id
        self.client_id = client_id or settings.graph_app_client_id
        self.client_secret = client_secret or settings.graph_app_client_secret
        self.base_url = settings.graph_base_url.rstrip("/")
        self.beta_url = settings.graph_beta_url.rstrip("/")
        self.timeout = settings.graph_timeout_seconds
        # Tests inject httpx.MockTransport here
        self._transport = transport
        self._token: Optional[str] = None

        if not (self.tenant_id and self.client_id and self.client_secret):
            raise GraphConfigError(
                "Azure AD configuration missing. Please configure GRAPH_APP_TENANT_ID, "
                "GRAPH_APP_CLIENT_ID, and GRAPH_APP_CLIENT_SECRET."
            )

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self._transport)

    def get_access_token(self) -> str:
        """Obtain a bearer token via the client-credentials grant. Never retried."""
        if self._token:
            return self._token

        token_url = f"{settings.graph_login_url.rstrip('/')}/{self.tenant_id}/oauth2/v2.0/token"
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": "https://graph.microsoft.com/.default",
            "grant_type": "client_credentials",
        }
        logger.info("graph_token_requested", tenant_id=self.tenant_id)
        try:
            with self._client() as client:
                response = client.post(token_url, data=data)
        except httpx.HTTPError as e:
            logger.error("graph_token_failed", error=str(e))
            raise GraphAuthError(None, str(e)) from e
        if not response.is_success:
            logger.error("graph_token_failed", status_code=response.status_code)
            raise GraphAuthError(response.status_code, response.text)

        try:
            self._token = response.json()["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error("graph_token_failed", error=f"unexpected token response: {e}")
            raise GraphAuthError(None, f"unexpected token response: {e}") from e
        return self._token

    def graph_get(self, url: str, token: Optional[str] = None, headers: Optional[Dict[str, str]] = None) -> Any:
        """GET a Graph URL and return the decoded JSON body"""
        request_headers = {
            "Authorization": f"Bearer {token or self.get_access_token()}",
            "Content-Type": "application/json",
        }
        request_headers.update(headers or {})

        try:
            with self._client() as client:
                response = client.get(url, headers=request_headers)
        except httpx.HTTPError as e:
            raise GraphUpstreamError(None, str(e) or type(e).__name__, url=url) from e
        if not response.is_success:
            raise GraphUpstreamError(response.status_code, response.text, url=url)
        try:
            return response.json()
        except ValueError as e:
            raise GraphUpstreamError(None, f"invalid JSON body: {e}", url=url) from e

    def get_paged(self, url: str, headers: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """Follow @odata.nextLink until exhausted and return every item"""
        items: List[Dict[str, Any]] = []
        next_url: Optional[str] = url
        while next_url:
            data = self.graph_get(next_url, headers=headers)
            items.extend(data.get("value") or [])
            next_url = data.get("@odata.nextLink")
        return items

    # Intune

    def list_managed_devices(self) -> List[Dict[str, Any]]:
        url = f"{self.beta_url}/deviceManagement/managedDevices?$select={','.join(DEVICE_FIELDS)}"
        devices = self.get_paged(url)
        logger.info("intune_devices_fetched", count=len(devices))
        return devices

    def get_managed_device(self, device_id: str) -> Dict[str, Any]:
        url = f"{self.beta_url}/deviceManagement/managedDevices/{device_id}?$select={','.join(DEVICE_FIELDS)}"
        return self.graph_get(url)

    # Entra ID

    def get_user(self, user_id: str) -> Dict[str, Any]:
        url = f"{self.beta_url}/users/{user_id}?$select=id,displayName,userPrincipalName"
        return self.graph_get(url)

    def list_recent_users(self, days: int, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Users created within the trailing window, newest first"""
        since = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        since_iso = since.strftime("%Y-%m-%dT%H:%M:%SZ")
        filter_expr = quote(f"createdDateTime ge {since_iso}")
        url = (
            f"{self.base_url}/users?$filter={filter_expr}&$select={','.join(USER_FIELDS)}"
            f"&$orderby=createdDateTime desc&$top=999"
        )
        # createdDateTime filters are advanced queries
        users = self.get_paged(url, headers={"ConsistencyLevel": "eventual"})
        logger.info("entra_users_fetched", count=len(users), since=since_iso)
        return users

    def list_subscribed_skus(self) -> List[Dict[str, Any]]:
        return self.get_paged(f"{self.base_url}/subscribedSkus")

