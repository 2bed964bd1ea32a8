from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .. import models, schemas
from ..config import Settings, get_settings
from ..permissions import Capability, Permissions
from .api import DineDeskClient, SessionExpired
from .notifications import Notifier
from .orders import OrderStore, OrderSync
from .realtime import BackoffPolicy, HttpEventSource, RealtimeConnection
from .storage import LocalStore, load_session_token, save_session_token

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Per-session state shared by every admin screen.

    Built once from an authenticated client and handed to whoever needs it.
    """

    client: DineDeskClient
    store: LocalStore
    on_session_expired: Optional[Callable[[], None]] = None
    user: Optional[schemas.UserOut] = None
    branding: Optional[schemas.Branding] = None
    currency: str = "INR"
    permissions: Permissions = field(default_factory=Permissions)

    def __post_init__(self) -> None:
        self.client.on_unauthorized = self._session_expired
        if self.client.token is None:
            self.client.token = load_session_token(self.store)

    def _session_expired(self) -> None:
        logger.info("Session expired; clearing stored token")
        self.client.token = None
        save_session_token(self.store, None)
        self.user = None
        self.permissions = Permissions()
        if self.on_session_expired is not None:
            self.on_session_expired()

    async def login(self, email: str, password: str) -> schemas.UserOut:
        session = await self.client.login(email, password)
        save_session_token(self.store, session.session_token)
        self._set_user(session.user)
        await self.load_branding()
        return session.user

    async def logout(self) -> None:
        try:
            await self.client.logout()
        finally:
            save_session_token(self.store, None)
            self.user = None
            self.permissions = Permissions()

    async def restore(self) -> Optional[schemas.UserOut]:
        """Resume a stored session; returns ``None`` when there is none or it expired."""
        if not self.client.token:
            return None
        try:
            self._set_user(await self.client.me())
        except SessionExpired:
            return None
        await self.load_branding()
        return self.user

    async def load_branding(self) -> Optional[schemas.Branding]:
        settings = await self.client.restaurant_settings()
        self.branding = schemas.Branding.from_settings(settings)
        self.currency = settings.currency
        return self.branding

    def _set_user(self, user: schemas.UserOut) -> None:
        self.user = user
        self.permissions = user.permissions

    def has_permission(self, capability: Capability) -> bool:
        return self.user is not None and self.permissions.allows(capability)

    @property
    def is_owner(self) -> bool:
        return self.user is not None and self.user.role == models.UserRole.owner

    @property
    def is_manager(self) -> bool:
        return self.user is not None and self.user.role == models.UserRole.manager

    @property
    def is_staff(self) -> bool:
        return self.user is not None and self.user.role == models.UserRole.staff

    def order_sync(self, notifier: Optional[Notifier] = None, settings: Optional[Settings] = None) -> OrderSync:
        """Wire the order store, the realtime stream and the polling fallback for this session."""
        settings = settings or get_settings()
        source = HttpEventSource(self.client.base_url, self.client.token)
        connection = RealtimeConnection(
            source, BackoffPolicy.from_settings(settings), on_unauthorized=self._session_expired
        )
        store = OrderStore(notifier, notice_seconds=settings.NEW_ORDER_NOTICE_SECONDS)
        return OrderSync(self.client, connection, store, poll_interval=settings.POLL_INTERVAL_SECONDS)
