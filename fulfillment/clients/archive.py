"""archive.org S3-compatible client for permanent media storage.

The permanent archive stores delivered media long-term and serves it through
public download and details URLs.

Architecture Pattern:
    Simple HTTP client wrapper - no retry logic (handled at service layer)
    Async-only interface using httpx.AsyncClient

Endpoints:
    PUT  {s3_endpoint}/{item_id}/{filename}        upload (auto-creates the item)
    HEAD {download_base}/download/{item_id}/{filename}   existence check
    GET  {download_base}/details/{item_id}          embed/details page

Usage:
    from fulfillment.clients.archive import ArchiveClient

    client = ArchiveClient(access_key, secret_key)
    response = await client.put_object("item1", "video.mp4", data, headers)
    status = await client.head_status(client.download_url("item1", "video.mp4"))
    await client.close()

Security:
    Credentials are sent with the archive's LOW auth scheme and never logged.
"""

from urllib.parse import quote

import httpx
import structlog

from fulfillment.config import get_archive_download_base, get_archive_s3_endpoint

log = structlog.get_logger(__name__)


def encode_meta_header(value: str) -> str:
    """Encode a metadata header value for the archive.

    Non-ASCII values use the archive's ``uri(...)`` percent-encoded form,
    since HTTP header values must be ASCII.
    """
    if value.isascii():
        return value
    return f"uri({quote(value, safe='')})"


class ArchiveClient:
    """Client for the archive.org S3-like upload API and public download URLs.

    Attributes:
        s3_endpoint: Upload API base URL.
        download_base: Public site base URL.
        client: Async HTTP client for making requests.
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        s3_endpoint: str | None = None,
        download_base: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._access_key = access_key
        self._secret_key = secret_key
        self.s3_endpoint = s3_endpoint or get_archive_s3_endpoint()
        self.download_base = download_base or get_archive_download_base()
        # Large video uploads need a long write timeout; connect stays short
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(600.0, connect=10.0))

    def __repr__(self) -> str:
        return f"ArchiveClient(s3_endpoint={self.s3_endpoint!r}, access_key=*****)"

    def upload_url(self, item_id: str, filename: str) -> str:
        return f"{self.s3_endpoint}/{item_id}/{filename}"

    def download_url(self, item_id: str, filename: str) -> str:
        return f"{self.download_base}/download/{item_id}/{filename}"

    def embed_url(self, item_id: str) -> str:
        return f"{self.download_base}/details/{item_id}"

    async def put_object(
        self,
        item_id: str,
        filename: str,
        data: bytes,
        metadata_headers: dict[str, str],
    ) -> httpx.Response:
        """Upload bytes with metadata in a single PUT.

        Args:
            item_id: Archive item (bucket) identifier.
            filename: Object name inside the item.
            data: Payload bytes.
            metadata_headers: Content-Type and x-archive-* headers.

        Returns:
            The raw response; status handling is the caller's job.

        Raises:
            httpx.TransportError: If the archive cannot be reached.
        """
        headers = {
            "Authorization": f"LOW {self._access_key}:{self._secret_key}",
            **{name: encode_meta_header(value) for name, value in metadata_headers.items()},
        }
        response = await self.client.put(
            self.upload_url(item_id, filename),
            headers=headers,
            content=data,
        )
        log.info(
            "archive_put_completed",
            item_id=item_id,
            filename=filename,
            status_code=response.status_code,
            size_bytes=len(data),
        )
        return response

    async def head_status(self, url: str) -> int:
        """Issue a HEAD request and return the status code.

        Redirects are followed, since download URLs redirect to a storage node.

        Raises:
            httpx.TransportError: If the request cannot be completed.
        """
        response = await self.client.head(url, follow_redirects=True)
        return response.status_code

    async def close(self) -> None:
        """Close HTTP client connection."""
        await self.client.aclose()
