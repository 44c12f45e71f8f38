"""Client for the calendar URL encryption endpoint."""
import logging
from typing import Optional

import requests

from processor.errors import FetchError

logger = logging.getLogger(__name__)


class CalendarUrlCipher:
    """Encrypts and decrypts feed URLs through a remote crypto endpoint.

    Without an endpoint, URLs are stored and returned as given.
    """

    def __init__(self, endpoint_url: Optional[str] = None, api_key: Optional[str] = None, timeout: int = 10):
        self.endpoint_url = endpoint_url
        self.api_key = api_key
        self.timeout = timeout

    def encrypt(self, url: str) -> str:
        if not self.endpoint_url:
            return url
        return self._call('encrypt', {'url': url}, 'encrypted')

    def decrypt(self, blob: str) -> str:
        """
        Recover a plaintext feed URL.

        Args:
            blob: Stored calendar_url value

        Returns:
            Plaintext URL

        Raises:
            FetchError: If the endpoint rejects the request
        """
        if not self.endpoint_url or blob.startswith(('http://', 'https://', 'webcal://')):
            return blob
        return self._call('decrypt', {'encrypted': blob}, 'decrypted')

    def _call(self, action: str, data: dict, result_key: str) -> str:
        headers = {}
        if self.api_key:
            headers['Authorization'] = f"Bearer {self.api_key}"

        try:
            response = requests.post(
                self.endpoint_url,
                json={'action': action, 'data': data},
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()[result_key]
        except (requests.RequestException, ValueError, KeyError) as e:
            logger.error(f"Calendar URL {action} failed: {e}")
            raise FetchError(f"Failed to {action} calendar URL: {e}") from e
