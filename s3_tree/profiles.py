from __future__ import annotations
"""Host alias profiles and persistence."""
from dataclasses import dataclass
import json
import logging
from pathlib import Path

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .factory import S3Config

LOGGER = logging.getLogger(__name__)

SECRET_SERVICE = "pys3tree-hosts"


@dataclass
class HostProfile:
    """Represents a saved S3 host alias."""

    alias: str
    url: str
    access_key: str
    secret_key: str
    signature: str = "S3v4"
    region: str = ""

    def to_config(self, path: str = "") -> S3Config:
        """Build a client config for ``path`` below this host."""

        host_url = self.url.rstrip("/")
        if path:
            host_url = f"{host_url}/{path.lstrip('/')}"
        return S3Config(
            host_url=host_url,
            access_key=self.access_key,
            secret_key=self.secret_key,
            signature=self.signature,
            region=self.region,
        )


class HostSecretStore:
    """Secret keys of host aliases, kept in the OS keyring.

    Entries live under the ``pys3tree-hosts`` service with the alias as the
    user name. Keyring failures are logged and treated as a missing secret,
    so a host without a usable keyring still loads with an empty secret key.
    """

    def __init__(self, service_name: str = SECRET_SERVICE, backend=keyring):
        self._service_name = service_name
        self._backend = backend

    def lookup(self, alias: str) -> str:
        if not alias:
            return ""
        try:
            return self._backend.get_password(self._service_name, alias) or ""
        except KeyringError:
            LOGGER.warning("Could not read the secret key of host %s from the keyring", alias, exc_info=True)
            return ""

    def store(self, alias: str, secret_key: str) -> None:
        if not alias:
            return
        if not secret_key:
            self.forget(alias)
            return
        try:
            self._backend.set_password(self._service_name, alias, secret_key)
        except KeyringError:
            LOGGER.warning("Could not store the secret key of host %s in the keyring", alias, exc_info=True)

    def forget(self, alias: str) -> None:
        if not alias:
            return
        try:
            self._backend.delete_password(self._service_name, alias)
        except PasswordDeleteError:
            LOGGER.debug("Host %s had no secret key in the keyring", alias)
        except KeyringError:
            LOGGER.warning("Could not remove the secret key of host %s from the keyring", alias, exc_info=True)


class ProfileStorage:
    """JSON-backed store for host profiles; secrets live in the keyring."""

    def __init__(self, storage_path: str | Path | None = None, secrets: HostSecretStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pys3tree_hosts.json"
        self._path = Path(storage_path)
        self._secrets = secrets or HostSecretStore()

    def load(self) -> list[HostProfile]:
        if not self._path.exists():
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return []

        profiles: list[HostProfile] = []
        sanitized: list[dict[str, str]] = []
        saw_plaintext = False
        for entry in data:
            try:
                alias = entry["alias"]
                url = entry["url"]
                access_key = entry["access_key"]
            except (KeyError, TypeError):
                continue
            secret_key = entry.get("secret_key", "")
            if secret_key:
                saw_plaintext = True
                self._secrets.store(alias, secret_key)
            else:
                secret_key = self._secrets.lookup(alias)
            signature = entry.get("signature") or "S3v4"
            region = entry.get("region") or ""
            profiles.append(
                HostProfile(
                    alias=alias,
                    url=url,
                    access_key=access_key,
                    secret_key=secret_key,
                    signature=signature,
                    region=region,
                )
            )
            sanitized.append(self._entry(alias, url, access_key, signature, region))
        if saw_plaintext:
            self._write_data(sanitized)
        return profiles

    def get(self, alias: str) -> HostProfile:
        for profile in self.load():
            if profile.alias == alias:
                return profile
        raise ValueError(f"Host alias '{alias}' does not exist")

    def save(self, profiles: list[HostProfile]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = []
        for profile in profiles:
            self._secrets.store(profile.alias, profile.secret_key)
            data.append(
                self._entry(profile.alias, profile.url, profile.access_key, profile.signature, profile.region)
            )
        existing_aliases = self._load_aliases()
        current_aliases = {profile.alias for profile in profiles}
        for alias in existing_aliases - current_aliases:
            self._secrets.forget(alias)
        self._write_data(data)

    @staticmethod
    def _entry(alias: str, url: str, access_key: str, signature: str, region: str) -> dict[str, str]:
        return {
            "alias": alias,
            "url": url,
            "access_key": access_key,
            "signature": signature,
            "region": region,
        }

    def _load_aliases(self) -> set[str]:
        if not self._path.exists():
            return set()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return set()
        aliases = set()
        for entry in data:
            alias = entry.get("alias")
            if isinstance(alias, str) and alias:
                aliases.add(alias)
        return aliases

    def _write_data(self, data: list[dict[str, str]]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
