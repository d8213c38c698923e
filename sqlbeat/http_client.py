"""
HTTP client utilities for sqlbeat.

Posts events as JSON documents to the analytics backend (an Elasticsearch
index endpoint, a Logstash http input, or any endpoint accepting one JSON
document per request), including SSL context handling.
"""

import json
import ssl
from typing import Any, Dict, Optional
from urllib.request import Request, urlopen


class EventHttpClient:
    """HTTP client for shipping events to the analytics backend."""

    def __init__(self, url: str, timeout: int = 10, headers: Optional[Dict[str, str]] = None, verify_tls: bool = True):
        """
        Initialize HTTP client.

        Args:
            url: Endpoint receiving one event per POST
            timeout: Request timeout in seconds
            headers: Extra headers sent with every request (e.g. Authorization)
            verify_tls: Verify the server certificate on HTTPS endpoints
        """
        self.url = url
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._ssl_context = self._create_ssl_context(verify_tls)

    def _create_ssl_context(self, verify_tls: bool) -> ssl.SSLContext:
        """Create SSL context for HTTPS, optionally trusting any server certificate."""
        ssl_context = ssl.create_default_context()
        if not verify_tls:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
        return ssl_context

    def post_json(self, data: Dict[str, Any]) -> Any:
        """
        Make a POST request with JSON data.

        Args:
            data: Dictionary to send as JSON

        Returns:
            Parsed response for JSON replies, the response text otherwise
            (a Logstash http input answers with a plain "ok")

        Raises:
            HTTPError: On HTTP errors
            URLError: On connection errors
            OSError: On socket errors while reading the response
            ValueError: On a reply declared as JSON that does not parse
        """
        body = json.dumps(data).encode("utf-8")
        hdrs = {"Content-Type": "application/json"}
        hdrs.update(self.headers)
        req = Request(self.url, data=body, headers=hdrs, method="POST")

        # Use SSL context for HTTPS URLs
        ssl_context = self._ssl_context if self.url.startswith("https://") else None

        with urlopen(req, timeout=self.timeout, context=ssl_context) as resp:
            raw = resp.read().decode("utf-8")
            content_type = resp.headers.get_content_type()

        if raw and content_type == "application/json":
            return json.loads(raw)
        return raw

    def send_event(self, event: Dict[str, Any]) -> Any:
        """Send a single event to the backend."""
        return self.post_json(event)
