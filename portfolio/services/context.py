import logging
from typing import List, Optional

from portfolio.config.settings import Settings
from portfolio.models.album import Album
from portfolio.services.auth_service import AdminAuthService
from portfolio.services.document_store import DocumentStore
from portfolio.services.identity_service import IdentityBootstrap, IdentityProvider
from portfolio.services.notification_service import NotificationCenter
from portfolio.services.sync_store import Subscription, SyncStore

logger = logging.getLogger(__name__)


class PortfolioContext:
    """Shared handles for every view, built once at startup and passed explicitly."""

    def __init__(
        self,
        settings: Settings,
        document_store: DocumentStore,
        identity_provider: IdentityProvider,
        notifications: Optional[NotificationCenter] = None,
    ):
        self.settings = settings
        self.document_store = document_store
        self.identity_provider = identity_provider
        self.identity = IdentityBootstrap(identity_provider, settings.INITIAL_AUTH_TOKEN)
        self.notifications = notifications or NotificationCenter(settings.NOTIFICATION_TTL_SECONDS)
        self.admin = AdminAuthService(
            settings.ADMIN_PASSWORD, settings.JWT_SECRET, settings.ADMIN_TOKEN_EXPIRE_MINUTES
        )
        self.sync_store = SyncStore(document_store, self.identity, on_error=self._report_subscription_error)
        self.albums: Optional[Subscription[List[Album]]] = None

    async def start(self) -> None:
        identity = await self.identity.start()
        if identity.is_degraded:
            self.notifications.error(f"Error signing in: {self.identity.error}")

        # Album list feeds the home and gallery pages for the whole session
        self.albums = self.sync_store.subscribe_albums()
        await self.albums.open()
        logger.info(f"[Context] Started uid={identity.uid}")

    async def close(self) -> None:
        if self.albums is not None:
            self.albums.cancel()
        self.identity.close()
        await self.identity_provider.aclose()
        logger.info("[Context] Closed")

    def current_albums(self) -> List[Album]:
        if self.albums is None or self.albums.current is None:
            return []
        return self.albums.current

    def _report_subscription_error(self, name: str, error: Exception) -> None:
        self.notifications.error(f"Error fetching {name}: {error}")
