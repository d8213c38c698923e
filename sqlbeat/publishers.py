"""Event publishers - hand finished events to the downstream sink one at a time"""
import json
import logging
import sys
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, TextIO
from urllib.error import HTTPError, URLError

from .http_client import EventHttpClient

logger = logging.getLogger("sqlbeat.publishers")


class PublishError(Exception):
    """An event could not be delivered to the sink"""


class Publisher(ABC):
    """Base class for event sinks"""

    @abstractmethod
    def publish(self, event: Dict[str, Any]) -> None:
        """Deliver one event, raise PublishError on failure"""

    def close(self) -> None:
        pass


class HttpPublisher(Publisher):
    """POSTs every event as a JSON document"""

    def __init__(self, client: EventHttpClient):
        self.client = client
        self.connection_failed = False

    def publish(self, event: Dict[str, Any]) -> None:
        try:
            self.client.send_event(event)
        except HTTPError as e:
            self.connection_failed = True
            try:
                msg = e.read().decode("utf-8")
            except Exception:
                msg = str(e)
            raise PublishError(f"HTTP {getattr(e, 'code', '?')} error from {self.client.url}: {msg}") from e
        except URLError as e:
            self.connection_failed = True
            raise PublishError(f"failed to reach {self.client.url}: {e.reason}") from e
        except (OSError, ValueError) as e:
            # Timeouts and resets while reading the reply, or an unreadable reply
            self.connection_failed = True
            raise PublishError(f"error talking to {self.client.url}: {e}") from e

        # Log successful reconnection after failures
        if self.connection_failed:
            logger.info("successfully reconnected to %s", self.client.url)
            self.connection_failed = False


class ConsolePublisher(Publisher):
    """Writes one JSON line per event"""

    def __init__(self, stream: Optional[TextIO] = None, pretty: bool = False):
        self.stream = stream or sys.stdout
        self.pretty = pretty

    def publish(self, event: Dict[str, Any]) -> None:
        try:
            self.stream.write(json.dumps(event, indent=2 if self.pretty else None) + "\n")
            self.stream.flush()
        except (OSError, ValueError) as e:
            raise PublishError(f"failed to write event: {e}") from e


def create_publisher(output) -> Publisher:
    """Create the publisher configured by an OutputConfig"""
    if output.type == "http":
        client = EventHttpClient(
            output.url,
            timeout=output.timeout,
            headers=output.headers,
            verify_tls=output.verify_tls,
        )
        logger.info("publishing events to %s", output.url)
        return HttpPublisher(client)
    if output.type == "console":
        return ConsolePublisher(pretty=output.pretty)
    raise ValueError(f"Output type {output.type} not supported")
