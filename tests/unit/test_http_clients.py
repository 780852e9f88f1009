"""Unit tests for the document fetcher and certificate client."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from publish_worker.domain.errors import ExternalUnavailableError
from publish_worker.infrastructure.aws.s3_io import S3ObjectNotFoundError
from publish_worker.infrastructure.http.certificate_client import CertificateClient
from publish_worker.infrastructure.http.document_fetcher import DocumentFetcher

CERTIFICATES = "https://certificates.example"


@pytest.fixture
def s3_io():
    s3 = MagicMock()
    s3.get_bytes = AsyncMock(return_value=b"drink\ntea\n")
    return s3


@pytest.fixture
def fetcher(s3_io):
    return DocumentFetcher(s3_io, httpx.AsyncClient())


@pytest.mark.asyncio
async def test_fetch_over_http(fetcher, httpx_mock):
    """Test non-S3 urls are fetched over HTTP."""
    httpx_mock.add_response(method="GET", url="http://example.org/tea.csv", content=b"drink\ntea\n")

    assert await fetcher.fetch("http://example.org/tea.csv") == b"drink\ntea\n"


@pytest.mark.asyncio
async def test_fetch_http_error(fetcher, httpx_mock):
    """Test HTTP failures are reported as unavailable."""
    httpx_mock.add_response(method="GET", url="http://example.org/tea.csv", status_code=404)

    with pytest.raises(ExternalUnavailableError):
        await fetcher.fetch("http://example.org/tea.csv")


@pytest.mark.asyncio
async def test_fetch_s3_url(fetcher, s3_io):
    """Test s3:// urls are read from their own bucket."""
    assert await fetcher.fetch("s3://schemas-bucket/schemas/s-1.json") == b"drink\ntea\n"

    s3_io.get_bytes.assert_awaited_once_with("schemas/s-1.json", "schemas-bucket")


@pytest.mark.asyncio
async def test_fetch_upload(fetcher, s3_io):
    """Test uploads are read from the worker bucket."""
    await fetcher.fetch_upload("uploads/tea.csv")

    s3_io.get_bytes.assert_awaited_once_with("uploads/tea.csv", None)


@pytest.mark.asyncio
async def test_fetch_missing_upload(fetcher, s3_io):
    """Test a missing upload is reported as unavailable."""
    s3_io.get_bytes.side_effect = S3ObjectNotFoundError("uploads/tea.csv")

    with pytest.raises(ExternalUnavailableError):
        await fetcher.fetch_upload("uploads/tea.csv")


@pytest.mark.asyncio
async def test_certificate_generate(httpx_mock):
    """Test certificate requests carry the site url and api token."""
    httpx_mock.add_response(method="POST", url=f"{CERTIFICATES}/datasets", json={"success": "pending"})
    client = CertificateClient(httpx.AsyncClient(), f"{CERTIFICATES}/", api_key="secret")

    result = await client.generate("http://octopub.github.io/hot-drinks")

    assert result == {"success": "pending"}
    [request] = httpx_mock.get_requests()
    assert request.headers["Authorization"] == "Token secret"
    assert json.loads(request.content) == {"documentationUrl": "http://octopub.github.io/hot-drinks"}


@pytest.mark.asyncio
async def test_certificate_result(httpx_mock):
    """Test the certificate result is read back."""
    httpx_mock.add_response(
        method="POST",
        url=f"{CERTIFICATES}/datasets/result",
        json={"certificate_url": f"{CERTIFICATES}/datasets/1.json"},
    )
    client = CertificateClient(httpx.AsyncClient(), CERTIFICATES)

    result = await client.result("http://octopub.github.io/hot-drinks")

    assert result["certificate_url"] == f"{CERTIFICATES}/datasets/1.json"
    assert "Authorization" not in httpx_mock.get_requests()[0].headers


@pytest.mark.asyncio
async def test_certificate_service_error(httpx_mock):
    """Test service errors are reported as unavailable."""
    httpx_mock.add_response(method="POST", url=f"{CERTIFICATES}/datasets", status_code=503)
    client = CertificateClient(httpx.AsyncClient(), CERTIFICATES)

    with pytest.raises(ExternalUnavailableError):
        await client.generate("http://octopub.github.io/hot-drinks")
