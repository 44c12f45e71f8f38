"""HTTP fetcher for ICS calendar feeds."""
import base64
import binascii
import json
import logging
import time
from typing import Optional
from urllib.parse import quote, unquote_to_bytes

import requests

from processor.errors import FetchError

logger = logging.getLogger(__name__)


class IcsFeedFetcher:
    """Fetcher for remote ICS calendar documents."""

    def __init__(
        self,
        timeout: int = 30,
        max_retries: int = 3,
        retry_delay: float = 1,
        proxy_url: Optional[str] = None,
    ):
        """
        Initialize the feed fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts per feed before giving up (default: 3)
            retry_delay: Base delay in seconds for exponential backoff
            proxy_url: Optional wrapper URL template with a {url} placeholder
        """
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.proxy_url = proxy_url

    def fetch(self, url: str) -> str:
        """
        Fetch a calendar feed as plain text.

        Args:
            url: Feed URL

        Returns:
            Calendar document text

        Raises:
            FetchError: If the feed cannot be retrieved or decoded
        """
        if not url:
            raise FetchError("Feed URL is empty")

        if url.startswith('webcal://'):
            url = 'https://' + url[len('webcal://'):]

        request_url = url
        if self.proxy_url:
            request_url = self.proxy_url.format(url=quote(url, safe=''))

        body = self._get_with_retry(request_url)
        text = self.unwrap_payload(body)

        logger.info(f"Fetched {len(text)} characters of calendar data")
        return text

    def _get_with_retry(self, request_url: str) -> str:
        """
        GET a URL with exponential backoff between attempts.

        Raises:
            FetchError: If all retry attempts fail
        """
        for attempt in range(self.max_retries):
            try:
                logger.info(f"Fetching calendar feed (attempt {attempt + 1}/{self.max_retries})")
                response = requests.get(request_url, timeout=self.timeout)
                response.raise_for_status()
                return response.text

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} retry attempts failed. Last error: {e}"
                    )
                    raise FetchError(f"Failed to fetch calendar: {e}") from e

    def unwrap_payload(self, body: str) -> str:
        """
        Reduce a fetched body to plain calendar text.

        Handles CORS-proxy JSON wrappers ({"contents": ...}) and data URLs,
        which such wrappers use for non-text content types.

        Args:
            body: Response body

        Returns:
            Calendar document text

        Raises:
            FetchError: If a wrapped payload cannot be decoded
        """
        text = body.lstrip('\ufeff')
        stripped = text.strip()

        if stripped.startswith('{'):
            try:
                wrapper = json.loads(stripped)
            except ValueError as e:
                raise FetchError(f"Malformed wrapper response: {e}") from e
            contents = wrapper.get('contents') if isinstance(wrapper, dict) else None
            if not isinstance(contents, str):
                raise FetchError("Wrapper response has no contents")
            text = contents
            stripped = text.strip()

        if stripped.startswith('data:'):
            text = self.decode_data_url(stripped)

        return text

    @staticmethod
    def decode_data_url(data_url: str) -> str:
        """
        Decode a data: URL to text.

        Args:
            data_url: URL of the form data:[<mediatype>][;base64],<data>

        Returns:
            Decoded text

        Raises:
            FetchError: If the URL is malformed or not valid UTF-8
        """
        header, sep, payload = data_url.partition(',')
        if not sep:
            raise FetchError("Malformed data URL")

        try:
            if header.endswith(';base64'):
                raw = base64.b64decode(payload.strip(), validate=False)
            else:
                raw = unquote_to_bytes(payload)
            return raw.decode('utf-8-sig')
        except (binascii.Error, UnicodeDecodeError) as e:
            raise FetchError(f"Failed to decode data URL payload: {e}") from e
