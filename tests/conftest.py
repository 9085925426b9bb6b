"""Shared pytest fixtures for HomeLink tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import keyring
import pytest
from keyring.backend import KeyringBackend
from keyring.errors import PasswordDeleteError

from homelink.client.preferences import CloudSession, LocalSession, PreferenceStore
from homelink.core.config import ServerAddress

SERVER = ServerAddress(host="192.168.1.10", port=8000)
LOCAL_API = "http://192.168.1.10:8000/api"
CLOUD_URL = "http://cloud.test"
CLOUD_API = "http://cloud.test/api"


class MemoryKeyring(KeyringBackend):
    """In-memory keyring backend so tests never touch the OS keyring."""

    priority = 1  # type: ignore[assignment]

    def __init__(self) -> None:
        super().__init__()
        self.passwords: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.passwords.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.passwords[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        try:
            del self.passwords[(service, username)]
        except KeyError as e:
            raise PasswordDeleteError("Password not found") from e


@pytest.fixture(autouse=True)
def memory_keyring() -> Generator[MemoryKeyring, None, None]:
    """Install an in-memory keyring for every test."""
    previous = keyring.get_keyring()
    backend = MemoryKeyring()
    keyring.set_keyring(backend)
    yield backend
    keyring.set_keyring(previous)


@pytest.fixture(autouse=True)
def isolated_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Point the config directory at tmp_path and drop cloud URL overrides."""
    monkeypatch.setenv("HOMELINK_CONFIG_DIR", str(tmp_path / ".homelink"))
    monkeypatch.delenv("HOMELINK_CLOUD_URL", raising=False)


@pytest.fixture
def store(tmp_path: Path) -> PreferenceStore:
    """Empty preference store."""
    return PreferenceStore(tmp_path / ".homelink")


@pytest.fixture
def configured_store(store: PreferenceStore) -> PreferenceStore:
    """Store with a local server, both sessions and a test cloud URL."""
    store.set_server_address(SERVER)
    store.set_cloud_url(CLOUD_URL)
    store.set_local_session(LocalSession(auth_token="local-token"))
    store.set_cloud_session(
        CloudSession(access_token="cloud-access", refresh_token="cloud-refresh")
    )
    return store
