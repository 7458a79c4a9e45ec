import logging
from typing import Optional

from chore_cycle.client.chore_service import ChoreService
from chore_cycle.client.realtime import Credentials, RealtimeChannel
from chore_cycle.client.session import Session, TokenStore
from chore_cycle.client.store import ChoreStore
from chore_cycle.config import settings
from chore_cycle.errors import AuthError, ChoreError
from chore_cycle.models.user import TokenResponse

logger = logging.getLogger(__name__)


class ChoreCycleClient:
    """Owns the session, REST client, realtime channel and chore store.

    Everything is built once and injected; nothing below this class reaches
    for module-level connection state.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        ws_url: Optional[str] = None,
        token_store: Optional[TokenStore] = None,
        session: Optional[Session] = None,
        service: Optional[ChoreService] = None,
        channel: Optional[RealtimeChannel] = None,
    ):
        self.ws_url = ws_url or settings.ws_url
        self.session = session or Session(token_store)
        self.service = service or ChoreService(self.session, base_url=api_url)
        self.channel = channel or RealtimeChannel()
        self.store = ChoreStore(self.session, self.service, self.channel)

    async def aclose(self) -> None:
        await self.logout(forget_token=False)
        await self.service.aclose()

    async def register(self, email: str, full_name: str, password: str) -> None:
        await self._start(await self.service.register(email, full_name, password))

    async def login(self, email: str, password: str) -> None:
        await self._start(await self.service.login(email, password))

    async def restore(self) -> bool:
        """Resume a session from the stored token, if it is still valid."""
        token = self.session.stored_token()
        if not token:
            return False

        self.session.set_token(token)
        try:
            user = await self.service.get_current_user()
        except AuthError:
            logger.info("Stored token rejected, staying logged out")
            self.session.clear()
            return False
        except ChoreError:
            # Server unreachable; keep the token for the next attempt.
            self.session.token = None
            raise

        await self._start(TokenResponse(access_token=token, token_type="bearer", user=user))
        return True

    async def _start(self, response: TokenResponse) -> None:
        self.session.start(response.access_token, response.user)
        self.store.clear()
        self.store.attach()
        await self.channel.connect(
            self.ws_url,
            Credentials(token=response.access_token, user_id=response.user.id),
        )
        try:
            await self.store.refresh()
        except ChoreError:
            logger.warning("Initial chore load failed; showing retry")

    async def logout(self, forget_token: bool = True) -> None:
        # Channel first so no late event can repopulate the store.
        await self.channel.disconnect()
        self.store.detach()
        self.store.clear()
        if forget_token:
            self.session.clear()
        else:
            self.session.token = None
            self.session.user = None
