from __future__ import annotations
"""Client construction with a cache of SDK clients keyed by host and credentials."""
from dataclasses import dataclass
import hashlib
import logging
import threading
from typing import Callable

import boto3
from botocore.client import Config

from .address import is_virtual_host_style, normalize_host
from .backend import S3Backend
from .client import S3Client
from .models import ResourceAddress
from .settings import AdapterSettings

LOGGER = logging.getLogger(__name__)


@dataclass
class S3Config:
    """Everything needed to reach one S3 target URL."""

    host_url: str
    access_key: str = ""
    secret_key: str = ""
    signature: str = "S3v4"
    region: str = ""
    insecure: bool = False
    debug: bool = False
    app_name: str = "pys3tree"
    app_version: str = ""


class ClientFactory:
    """Creates :class:`S3Client` handles, sharing SDK clients between them.

    SDK clients are cached by a hash of the endpoint host and credentials,
    so many handles on the same host reuse one connection pool.
    """

    def __init__(
        self,
        client_factory: Callable[..., object] | None = None,
        *,
        settings: AdapterSettings | None = None,
        http_session_factory: Callable[[], object] | None = None,
    ):
        self._client_factory = client_factory or boto3.client
        self._settings = settings or AdapterSettings()
        self._http_session_factory = http_session_factory
        self._cache: dict[str, object] = {}
        self._lock = threading.Lock()

    @staticmethod
    def cache_key(*parts: object) -> str:
        """Hash every setting that is fixed into an SDK client when it is built."""

        hasher = hashlib.sha256()
        for part in parts:
            hasher.update(str(part).encode("utf-8"))
            hasher.update(b"\0")
        return hasher.hexdigest()

    def get_or_create(self, config: S3Config) -> S3Client:
        address = ResourceAddress.parse(config.host_url)
        virtual_style = is_virtual_host_style(address.host)
        host = normalize_host(address.host) if virtual_style else address.host
        endpoint_url = f"{address.scheme}://{host}"

        key = self.cache_key(
            endpoint_url,
            config.access_key,
            config.secret_key,
            config.signature.upper(),
            config.region,
            config.insecure,
            virtual_style,
        )
        with self._lock:
            api = self._cache.get(key)
            if api is None:
                api = self._create_client(config, endpoint_url, virtual_style)
                self._cache[key] = api
                LOGGER.debug("Created S3 client for %s", host)
            else:
                LOGGER.debug("Reusing S3 client for %s", host)

        if config.debug:
            boto3.set_stream_logger("botocore", logging.DEBUG)

        backend = S3Backend(
            api,
            endpoint_url=endpoint_url,
            access_key=config.access_key,
            secret_key=config.secret_key,
            region=config.region,
            verify=not config.insecure,
            page_size=self._settings.page_size,
            http_session_factory=self._http_session_factory,
        )
        return S3Client(address, backend, virtual_style=virtual_style, settings=self._settings)

    def _create_client(self, config: S3Config, endpoint_url: str, virtual_style: bool):
        user_agent = config.app_name
        if config.app_version:
            user_agent = f"{config.app_name}/{config.app_version}"
        client_config = Config(
            signature_version="s3" if config.signature.upper() == "S3V2" else "s3v4",
            s3={"addressing_style": "virtual" if virtual_style else "path"},
            user_agent_extra=user_agent,
        )
        return self._client_factory(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=config.access_key,
            aws_secret_access_key=config.secret_key,
            region_name=config.region or None,
            verify=not config.insecure,
            config=client_config,
        )
