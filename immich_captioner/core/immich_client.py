"""
Immich API Client for downloading asset thumbnails.
"""

import logging
from typing import Optional

import requests

from . import config
from .exceptions import RemoteStatusError, TransportError
from immich_captioner.utils.logger import log_api_request


class ImmichClient:
    """Client for the Immich server's HTTP API.

    Only the thumbnail endpoint is used; everything else the captioner needs
    comes straight from the database.

    Supports context manager protocol for automatic cleanup:
        with ImmichClient(base_url, api_key) as client:
            data = client.download_thumbnail(asset_id)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = config.THUMBNAIL_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Immich client.

        Args:
            base_url: Base URL of the Immich server (e.g., http://192.168.1.10:2283)
            api_key: Immich API key, sent as the x-api-key header
            timeout: Per-request timeout in seconds (default: 15)
            session: Optional pre-built requests session (reused for all calls)
        """
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager and release pooled connections."""
        self.close()
        return False

    def thumbnail_url(self, asset_id: str) -> str:
        return f"{self.base_url}/api/assets/{asset_id}/thumbnail"

    def download_thumbnail(self, asset_id: str) -> bytes:
        """
        Download the thumbnail of an asset.

        Args:
            asset_id: Immich asset id

        Returns:
            The raw thumbnail bytes.

        Raises:
            TransportError: On timeout or connection failure (not retried).
            RemoteStatusError: If the server answers with anything but 200.
        """
        url = self.thumbnail_url(asset_id)
        params = {"format": "JPEG"}
        headers = {
            "x-api-key": self.api_key,
            "Accept": "application/octet-stream",
        }
        log_api_request(self.logger, "GET", url, headers=headers, params=params)

        try:
            # stream=True defers the body; the with-block returns the connection
            # to the pool on every exit path, including non-200 answers.
            with self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
                stream=True,
            ) as response:
                if response.status_code != 200:
                    self.logger.debug(f"[IMMICH] Thumbnail {asset_id} answered {response.status_code}")
                    raise RemoteStatusError(response.status_code)
                data = response.content
        except requests.RequestException as e:
            raise TransportError(f"thumbnail request failed: {e}") from e

        self.logger.debug(f"[IMMICH] Downloaded thumbnail {asset_id} ({len(data)} bytes)")
        return data

    def close(self):
        """Close the underlying HTTP session."""
        self.session.close()

    def __repr__(self) -> str:
        return f"<ImmichClient base_url={self.base_url} timeout={self.timeout}>"
