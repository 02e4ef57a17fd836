"""
Netron Transport Layer - Device Document Retrieval and Form Posts

The device serves its configuration as JSON documents and accepts
changes as URL-encoded form posts terminated by an ``EndFlag=1`` field.

Classes:
    DeviceTransport: Abstract base class for device communication
    HttpDeviceTransport: HTTP implementation on a requests.Session
    FixtureTransport: Reads documents from a directory, records posts

Protocol:
    GET  {base_url}/DMXPorts.json                  -> JSON document
    POST {base_url}/save_dmx_port  ptMode=2&...&EndFlag=1 -> JSON reply

Example:
    transport = HttpDeviceTransport("http://2.143.56.6")
    setting, ports = await transport.get_many_json(["Setting.json", "DMXPorts.json"])
    await transport.post_form("set_identify", {"IdentifyStatus": 2})
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
import asyncio
import json
import logging
import os

import requests

from .config import END_FLAG

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Base exception for device transport errors."""
    pass


class TransportTimeoutError(TransportError):
    """Device did not answer in time."""
    pass


class TransportConnectionError(TransportError):
    """Could not reach the device."""
    pass


class TransportHttpError(TransportError):
    """Device answered with a non-success HTTP status."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


class BulkLoadError(TransportError):
    """
    One or more documents of a batch failed.

    Attributes:
        failures: (document name, error message) for every failed fetch
    """

    def __init__(self, failures: List[Tuple[str, str]]):
        self.failures = failures
        details = ", ".join(f"{name}: {message}" for name, message in failures)
        super().__init__(f"Errors occurred during fetch: {details}")


class DeviceTransport(ABC):
    """
    Abstract base class for device communication.

    All methods are async. Implementations raise TransportError
    subclasses; callers never see library-specific exceptions.
    """

    @abstractmethod
    async def get_json(self, name: str) -> Any:
        """
        Fetch one JSON document.

        Args:
            name: Document file name (e.g. "DMXPorts.json")

        Returns:
            Decoded document

        Raises:
            TransportError: On any failure
        """
        pass

    @abstractmethod
    async def post_form(self, endpoint: str, fields: Mapping[str, Any]) -> Any:
        """
        Submit a field map to a named endpoint.

        Args:
            endpoint: Endpoint name (e.g. "save_dmx_port")
            fields: Field/value map, without the end flag

        Returns:
            Decoded device reply ({} when the reply is not JSON)

        Raises:
            TransportError: On any failure
        """
        pass

    async def get_many_json(self, names: Sequence[str]) -> List[Any]:
        """
        Fetch several documents concurrently, preserving order.

        Every fetch runs to completion before failures are reported, so
        the error lists all failed documents.

        Raises:
            BulkLoadError: If any document failed
        """
        results = await asyncio.gather(
            *(self.get_json(name) for name in names),
            return_exceptions=True,
        )

        failures: List[Tuple[str, str]] = []
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                logger.error(f"Error fetching {name}: {result}")
                failures.append((name, str(result)))

        if failures:
            raise BulkLoadError(failures)
        return list(results)

    async def close(self) -> None:
        """Release resources. No-op by default."""
        pass


class HttpDeviceTransport(DeviceTransport):
    """
    HTTP transport to the device web server.

    Requests are blocking calls on a shared requests.Session, run in
    the loop's default executor so batch fetches overlap.
    """

    DEFAULT_TIMEOUT = 5.0
    GET_HEADERS = {"Accept": "application/json"}
    POST_HEADERS = {"Content-Type": "application/x-www-form-urlencoded; charset=UTF-8"}

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize HTTP transport.

        Args:
            base_url: Device address, e.g. "http://2.143.56.6"
            timeout: Per-request timeout in seconds
            session: Session to use (a new one by default)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, name: str) -> str:
        return f"{self.base_url}/{name.lstrip('/')}"

    def _request(self, method: str, name: str, **kwargs: Any) -> requests.Response:
        url = self._url(name)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            raise TransportTimeoutError(f"No response from {url} within {self.timeout}s") from e
        except requests.ConnectionError as e:
            raise TransportConnectionError(f"Failed to reach {url}: {e}") from e
        except requests.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        if not response.ok:
            raise TransportHttpError(f"HTTP error! status: {response.status_code}", response.status_code)
        return response

    def _get(self, name: str) -> Any:
        response = self._request("GET", name, headers=self.GET_HEADERS)
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Invalid JSON in {name}: {e}") from e
        logger.debug(f"GET {name}: {data}")
        return data

    def _post(self, endpoint: str, fields: Mapping[str, Any]) -> Any:
        body = list(fields.items()) + [END_FLAG]
        logger.debug(f"POST {endpoint}: {body}")
        response = self._request("POST", endpoint, data=body, headers=self.POST_HEADERS)
        try:
            return response.json()
        except ValueError:
            return {}

    async def get_json(self, name: str) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._get, name)

    async def post_form(self, endpoint: str, fields: Mapping[str, Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._post, endpoint, fields)

    async def close(self) -> None:
        self.session.close()


class FixtureTransport(DeviceTransport):
    """
    Offline transport for development and tests.

    Documents are read from ``directory`` (or ``directory/model`` when a
    model is given). Posts are not sent anywhere: they are recorded in
    ``posted`` with the end flag appended, and echoed back.
    """

    def __init__(self, directory: str, model: Optional[str] = None):
        self.directory = os.path.join(directory, model) if model else directory
        self.posted: List[Tuple[str, Dict[str, Any]]] = []

    async def get_json(self, name: str) -> Any:
        path = os.path.join(self.directory, name)
        try:
            with open(path, 'r') as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise TransportHttpError(f"Fixture not found: {name}", 404) from e
        except (OSError, ValueError) as e:
            raise TransportError(f"Invalid fixture {name}: {e}") from e

    async def post_form(self, endpoint: str, fields: Mapping[str, Any]) -> Any:
        body = dict(fields)
        body[END_FLAG[0]] = END_FLAG[1]
        self.posted.append((endpoint, body))
        logger.info(f"Fixture POST {endpoint}: {body}")
        return dict(fields)


def create_transport(
    transport_type: str = "http",
    **kwargs: Any
) -> DeviceTransport:
    """
    Create a device transport instance.

    Args:
        transport_type: Transport type ("http" or "fixture")
        **kwargs: Transport-specific options

    Returns:
        DeviceTransport instance

    Raises:
        ValueError: If transport type unknown
    """
    if transport_type == "http":
        return HttpDeviceTransport(**kwargs)
    if transport_type == "fixture":
        return FixtureTransport(**kwargs)

    raise ValueError(f"Unknown transport type: {transport_type}")
