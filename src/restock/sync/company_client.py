"""HTTP client for the organization directory service.

The directory links several stores under one company code and holds the
snapshot each store last published.
"""

from dataclasses import dataclass, field
from urllib.parse import quote

import httpx

from restock.config import Config
from restock.database.models import Snapshot
from restock.utils.errors import NETWORK_ERROR_MESSAGE, RestockError


class OrgDirectoryError(RestockError):
    """The directory rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class CreateOrgResult:
    org_id: str = ""
    code: str = ""
    stores: list[str] = field(default_factory=list)


@dataclass
class JoinOrgResult:
    org_id: str = ""
    stores: list[str] = field(default_factory=list)


def _segment(value: str) -> str:
    return quote(value, safe="")


class OrgDirectoryClient:
    """Thin request/response wrapper; every failure raises OrgDirectoryError."""

    def __init__(self, base_url: str = None, timeout: float = None,
                 client: httpx.Client = None):
        self.base_url = (base_url or Config.COMPANY_API_URL).rstrip("/")
        self._http = client or httpx.Client(
            timeout=httpx.Timeout(
                timeout if timeout is not None else Config.HTTP_TIMEOUT
            ),
        )

    def close(self):
        self._http.close()

    def _request(self, method: str, path: str, default_message: str,
                 payload: dict = None) -> dict:
        try:
            response = self._http.request(
                method, f"{self.base_url}{path}", json=payload
            )
        except httpx.HTTPError as e:
            raise OrgDirectoryError(NETWORK_ERROR_MESSAGE) from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.is_success:
            raise OrgDirectoryError(
                data.get("message") or default_message,
                status_code=response.status_code,
            )
        return data

    def create(self, store_name: str) -> CreateOrgResult:
        data = self._request(
            "POST", "/org", "Failed to create company",
            {"storeName": store_name},
        )
        return CreateOrgResult(
            org_id=data.get("orgId", ""),
            code=data.get("code", ""),
            stores=list(data.get("stores") or []),
        )

    def join(self, code: str, store_name: str) -> JoinOrgResult:
        data = self._request(
            "POST", "/org/join", "Failed to join company",
            {"code": code, "storeName": store_name},
        )
        return JoinOrgResult(
            org_id=data.get("orgId", ""),
            stores=list(data.get("stores") or []),
        )

    def list_stores(self, code: str) -> list[str]:
        data = self._request(
            "GET", f"/org/{_segment(code)}/stores", "Failed to fetch stores"
        )
        return list(data.get("stores") or [])

    def publish_snapshot(self, code: str, store_name: str, snapshot: dict):
        self._request(
            "POST", "/snapshot", "Failed to publish snapshot",
            {"code": code, "storeName": store_name, "snapshot": snapshot},
        )

    def fetch_snapshot(self, code: str, store_name: str) -> Snapshot:
        data = self._request(
            "GET",
            f"/snapshot/{_segment(code)}/{_segment(store_name)}",
            "Failed to fetch snapshot",
        )
        return Snapshot.from_dict(data)
