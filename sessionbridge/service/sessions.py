from __future__ import annotations

from dataclasses import dataclass

from sessionbridge.config import OAuthStateMode, Settings
from sessionbridge.logging import get_logger, short_id
from sessionbridge.service.errors import (
    InvalidState,
    MissingCode,
    MissingState,
    RefreshTokenRevoked,
    SessionMismatch,
    SessionNotFound,
)
from sessionbridge.service.ids import (
    generate_oauth_state,
    generate_refresh_token_id,
    generate_session_id,
)
from sessionbridge.service.oauth import OAuthExchangeClient
from sessionbridge.service.tokens import TokenCodec
from sessionbridge.storage.base import (
    SessionStore,
    oauth_state_key,
    refresh_token_key,
    session_key,
)
from sessionbridge.storage.errors import KeyNotFound


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 0


class SessionManager:
    """Session and token lifecycle on top of the store, codec and OAuth exchange.

    Holds no mutable state of its own; every decision is made from the signed
    token and a fresh store read, so one instance serves all requests.
    """

    def __init__(
        self,
        store: SessionStore,
        codec: TokenCodec,
        exchange: OAuthExchangeClient,
        settings: Settings,
    ) -> None:
        self.store = store
        self.codec = codec
        self.exchange = exchange
        self.settings = settings
        self.logger = get_logger(__name__)

    def _issue_pair(self, session_id: str, refresh_token_id: str) -> TokenPair:
        access_ttl = self.settings.access_token_ttl_seconds
        return TokenPair(
            access_token=self.codec.issue_access_token(session_id, access_ttl),
            refresh_token=self.codec.issue_refresh_token(
                refresh_token_id, session_id, self.settings.refresh_token_ttl_seconds
            ),
            expires_in=access_ttl,
        )

    async def issue_oauth_state(self) -> str:
        state = generate_oauth_state()
        await self.store.set(
            oauth_state_key(state), "1", self.settings.oauth_state_ttl_seconds
        )
        return state

    async def consume_oauth_state(self, state: str | None) -> None:
        """Accept ``state`` once. Raises ``MissingState`` or ``InvalidState``."""
        if not state:
            raise MissingState("state parameter is required")
        if self.settings.oauth_state_mode == OAuthStateMode.PRESENCE:
            self.logger.warning("oauth_state_not_verified", mode="presence")
            return
        if not await self.store.delete(oauth_state_key(state)):
            self.logger.warning("oauth_state_rejected", state_prefix=short_id(state))
            raise InvalidState("state unknown, expired or already used")

    async def complete_oauth_callback(self, code: str | None) -> TokenPair:
        """Exchange ``code`` and create a session with its first refresh token.

        Steps run in order and the first failure aborts. Entries written
        before a failure are left to expire; no token pair is returned.
        """
        if not code:
            raise MissingCode("authorization code is required")
        credential = await self.exchange.exchange_code(code)

        session_id = generate_session_id()
        await self.store.set(
            session_key(session_id), credential, self.settings.session_ttl_seconds
        )

        refresh_token_id = generate_refresh_token_id()
        await self.store.set(
            refresh_token_key(refresh_token_id),
            session_id,
            self.settings.refresh_token_ttl_seconds,
        )

        pair = self._issue_pair(session_id, refresh_token_id)
        self.logger.info("session_created", session=short_id(session_id))
        return pair

    async def verify_session(self, access_token: str) -> str:
        """Return the upstream credential bound to a valid access token."""
        claims = self.codec.verify_access_token(access_token)
        try:
            return await self.store.get(session_key(claims.session_id))
        except KeyNotFound as exc:
            self.logger.info("session_not_found", session=short_id(claims.session_id))
            raise SessionNotFound("session expired or missing") from exc

    async def rotate_refresh_token(self, refresh_token: str) -> TokenPair:
        """Consume a refresh token and mint a replacement pair.

        The old refresh-token entry is deleted before the new one is written.
        Only the caller whose delete removed the entry proceeds, so two
        concurrent rotations of the same token yield exactly one new pair.
        """
        claims = self.codec.verify_refresh_token(refresh_token)
        old_key = refresh_token_key(claims.refresh_token_id)

        try:
            stored_session_id = await self.store.get(old_key)
        except KeyNotFound as exc:
            self.logger.warning(
                "refresh_token_revoked",
                refresh=short_id(claims.refresh_token_id),
                session=short_id(claims.session_id),
            )
            raise RefreshTokenRevoked("refresh token not live") from exc

        if stored_session_id != claims.session_id:
            self.logger.error(
                "refresh_session_mismatch",
                refresh=short_id(claims.refresh_token_id),
                claimed_session=short_id(claims.session_id),
                stored_session=short_id(stored_session_id),
            )
            raise SessionMismatch("signed session differs from stored session")

        if not await self.store.exists(session_key(stored_session_id)):
            self.logger.info("refresh_session_expired", session=short_id(stored_session_id))
            raise SessionNotFound("session expired or missing")

        if not await self.store.delete(old_key):
            self.logger.warning(
                "refresh_rotation_lost_race", refresh=short_id(claims.refresh_token_id)
            )
            raise RefreshTokenRevoked("refresh token consumed concurrently")

        new_refresh_token_id = generate_refresh_token_id()
        await self.store.set(
            refresh_token_key(new_refresh_token_id),
            stored_session_id,
            self.settings.refresh_token_ttl_seconds,
        )

        pair = self._issue_pair(stored_session_id, new_refresh_token_id)
        self.logger.info(
            "refresh_token_rotated",
            session=short_id(stored_session_id),
            refresh=short_id(new_refresh_token_id),
        )
        return pair
