import asyncio
from logging import getLogger
import sys

if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .errors import StorageError
from .oauth2.kv import Keystore

logger = getLogger(__name__)

DEFAULT_SERVICE_NAME = "frappe_session"


class KeyringKeystore(Keystore):
    """Keystore backed by the operating system's secure credential storage."""

    service_name: str

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME):
        self.service_name = service_name

    @override
    async def get(self, key: str) -> str | None:
        logger.debug(f"keyring get {self.service_name}({key})")
        try:
            return await asyncio.to_thread(keyring.get_password, self.service_name, key)
        except KeyringError as exception:
            raise StorageError(f"unable to read {key}: {exception}") from exception

    @override
    async def set(self, key: str, value: str):
        logger.debug(f"keyring set {self.service_name}({key})")
        try:
            await asyncio.to_thread(
                keyring.set_password, self.service_name, key, value
            )
        except KeyringError as exception:
            raise StorageError(f"unable to write {key}: {exception}") from exception

    @override
    async def delete(self, key: str):
        logger.debug(f"keyring delete {self.service_name}({key})")
        try:
            await asyncio.to_thread(keyring.delete_password, self.service_name, key)
        except PasswordDeleteError:
            # already gone
            return
        except KeyringError as exception:
            raise StorageError(f"unable to delete {key}: {exception}") from exception
