"""Open data certificate service client."""

import httpx
import structlog

from publish_worker.domain.errors import ExternalUnavailableError
from publish_worker.domain.ports import CertificateIssuerPort
from publish_worker.domain.types import JsonDict

logger = structlog.get_logger()


class CertificateClient(CertificateIssuerPort):
    """Requests certificates for published sites.

    ``generate`` answers ``{"success": "pending"}`` once a request has been
    accepted; ``result`` then carries the ``certificate_url`` when issued.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str, api_key: str | None = None) -> None:
        """Initialize certificate client."""
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.headers = {"Authorization": f"Token {api_key}"} if api_key else {}

    async def generate(self, site_url: str) -> JsonDict:
        return await self._send("POST", "/datasets", {"documentationUrl": site_url})

    async def result(self, site_url: str) -> JsonDict:
        return await self._send("POST", "/datasets/result", {"documentationUrl": site_url})

    async def _send(self, method: str, path: str, payload: JsonDict) -> JsonDict:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(method, url, json=payload, headers=self.headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("certificate_request_failed", url=url, error=str(e))
            raise ExternalUnavailableError(f"Certificate service failed: {e}") from e
        return response.json()
