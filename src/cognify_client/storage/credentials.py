"""Access/refresh token persistence."""

import structlog

from cognify_client.errors import StorageError
from cognify_client.models.session import SessionCredentials, TokenPair
from cognify_client.storage.key_value import KeyValueStore

logger = structlog.get_logger()

TOKEN_KEY = "cognify_token"
REFRESH_TOKEN_KEY = "cognify_refresh_token"


class CredentialStore:
    """Tokens held in memory and mirrored to a persistent store.

    Only login, refresh and logout write here. Storage failures are logged
    and the in-memory copy stays authoritative for the running process.
    """

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._credentials = SessionCredentials()
        self._loaded = False

    async def _load(self) -> None:
        if self._loaded:
            return
        try:
            access = await self._store.get_item(TOKEN_KEY)
            refresh = await self._store.get_item(REFRESH_TOKEN_KEY)
        except StorageError as exc:
            logger.warning("credentials_load_failed", error=str(exc))
            access = refresh = None
        self._credentials = SessionCredentials(access_token=access, refresh_token=refresh)
        self._loaded = True

    async def get_access_token(self) -> str | None:
        await self._load()
        return self._credentials.access_token

    async def get_refresh_token(self) -> str | None:
        await self._load()
        return self._credentials.refresh_token

    async def save(self, tokens: TokenPair) -> None:
        self._credentials = SessionCredentials(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
        )
        self._loaded = True
        try:
            await self._store.set_item(TOKEN_KEY, tokens.access_token)
            await self._store.set_item(REFRESH_TOKEN_KEY, tokens.refresh_token)
        except StorageError as exc:
            logger.warning("credentials_persist_failed", error=str(exc))

    async def clear(self) -> None:
        self._credentials = SessionCredentials()
        self._loaded = True
        try:
            await self._store.delete_item(TOKEN_KEY)
            await self._store.delete_item(REFRESH_TOKEN_KEY)
        except StorageError as exc:
            logger.warning("credentials_clear_failed", error=str(exc))
