import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx
import jwt

from portfolio.services.errors import IdentityError

logger = logging.getLogger(__name__)

PROVIDER_CUSTOM_TOKEN = "custom_token"
PROVIDER_ANONYMOUS = "anonymous"
PROVIDER_LOCAL = "local"


@dataclass
class Identity:
    uid: str
    provider: str
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.provider == PROVIDER_LOCAL


IdentityListener = Callable[[Optional[Identity]], None]


class IdentityProvider:
    """Firebase Authentication client using the Identity Toolkit REST API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://identitytoolkit.googleapis.com/v1",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._current: Optional[Identity] = None
        self._listeners: List[IdentityListener] = []

    @property
    def current(self) -> Optional[Identity]:
        return self._current

    def on_identity_changed(self, listener: IdentityListener) -> Callable[[], None]:
        """Register a listener; the returned callable detaches it."""
        self._listeners.append(listener)

        def detach() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return detach

    async def sign_in_with_token(self, token: str) -> Identity:
        payload = await self._post("accounts:signInWithCustomToken", {"token": token, "returnSecureToken": True})
        id_token = payload.get("idToken")
        uid = payload.get("localId") or self._uid_from_id_token(id_token)
        identity = Identity(uid=uid, provider=PROVIDER_CUSTOM_TOKEN, id_token=id_token,
                            refresh_token=payload.get("refreshToken"))
        self._set_current(identity)
        return identity

    async def sign_in_anonymously(self) -> Identity:
        payload = await self._post("accounts:signUp", {"returnSecureToken": True})
        uid = payload.get("localId")
        if not uid:
            raise IdentityError("Anonymous sign-in response has no localId")
        identity = Identity(uid=uid, provider=PROVIDER_ANONYMOUS, id_token=payload.get("idToken"),
                            refresh_token=payload.get("refreshToken"))
        self._set_current(identity)
        return identity

    def use_local_identity(self) -> Identity:
        """Adopt a random, non-persisted identity when every sign-in failed."""
        identity = Identity(uid=f"local-{uuid.uuid4().hex}", provider=PROVIDER_LOCAL)
        self._set_current(identity)
        return identity

    def sign_out(self) -> None:
        if self._current is None:
            return
        logger.info(f"[Identity] Signed out uid={self._current.uid}")
        self._set_current(None)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _set_current(self, identity: Optional[Identity]) -> None:
        self._current = identity
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception as e:
                logger.error(f"[Identity] Listener failed: {e}", exc_info=True)

    def _uid_from_id_token(self, id_token: Optional[str]) -> str:
        if not id_token:
            raise IdentityError("Sign-in response has no idToken")
        try:
            # Issued to us by the provider over TLS; only the payload is needed.
            claims = jwt.decode(id_token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            raise IdentityError(f"Could not decode idToken: {e}") from e
        uid = claims.get("user_id") or claims.get("sub")
        if not uid:
            raise IdentityError("idToken carries no user id")
        return uid

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise IdentityError("FIREBASE_API_KEY is not set")
        if self._client is None:
            self._client = httpx.AsyncClient()

        try:
            response = await self._client.post(f"{self.base_url}/{endpoint}", params={"key": self.api_key}, json=body)
        except httpx.HTTPError as e:
            logger.error(f"[Identity] {endpoint} request failed: {e}")
            raise IdentityError(f"{endpoint} request failed: {e}") from e

        if response.status_code != 200:
            logger.error(f"[Identity] {endpoint} error: {response.status_code} - {response.text}")
            raise IdentityError(f"{endpoint} failed with status {response.status_code}")
        return response.json()


class IdentityBootstrap:
    """Produces the single session identity and gates data access on it."""

    def __init__(self, provider: IdentityProvider, initial_token: Optional[str] = None):
        self.provider = provider
        self.initial_token = initial_token
        self._ready = asyncio.Event()
        self._identity: Optional[Identity] = None
        self._started = False
        self.error: Optional[str] = None
        self._detach = provider.on_identity_changed(self._on_identity_changed)

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def start(self) -> Identity:
        if self._started:
            return await self.wait_ready()
        self._started = True

        identity = None
        if self.initial_token:
            try:
                logger.info("[Identity] Signing in with initial token")
                identity = await self.provider.sign_in_with_token(self.initial_token)
            except Exception as e:
                logger.warning(f"[Identity] Token sign-in failed: {e}")
                self.error = str(e)

        if identity is None:
            try:
                logger.info("[Identity] Signing in anonymously")
                identity = await self.provider.sign_in_anonymously()
            except Exception as e:
                logger.warning(f"[Identity] Anonymous sign-in failed: {e}")
                self.error = str(e)

        if identity is None:
            logger.warning("[Identity] Continuing with a local identity - data will not be attributed")
            identity = self.provider.use_local_identity()
        else:
            self.error = None

        self._identity = identity
        self._ready.set()
        logger.info(f"[Identity] Ready uid={identity.uid} provider={identity.provider}")
        return identity

    async def wait_ready(self) -> Optional[Identity]:
        await self._ready.wait()
        return self._identity

    def close(self) -> None:
        self._detach()

    def _on_identity_changed(self, identity: Optional[Identity]) -> None:
        # Ready stays set after sign-out; commands check the identity itself
        if identity is None and self._identity is not None:
            logger.info(f"[Identity] Session ended uid={self._identity.uid}")
        self._identity = identity
