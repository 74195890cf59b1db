"""
Discord role grant.

Assigns the configured role to a guild member through the Discord REST API.
"""
import logging
from typing import Optional

import httpx

from .config import Settings
from .errors import GrantError

logger = logging.getLogger(__name__)


class DiscordRoleGranter:
    def __init__(
        self,
        bot_token: str,
        guild_id: str,
        role_id: str,
        base_url: str = "https://discord.com/api/v10",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.guild_id = guild_id
        self.role_id = role_id
        self.base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bot {bot_token}"}
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "DiscordRoleGranter":
        return cls(
            bot_token=settings.discord_bot_token,
            guild_id=settings.discord_guild_id,
            role_id=settings.discord_role_id,
            base_url=settings.discord_api_base_url,
            timeout=settings.grant_timeout_s,
        )

    def role_url(self, user_id: str) -> str:
        return f"{self.base_url}/guilds/{self.guild_id}/members/{user_id}/roles/{self.role_id}"

    async def grant(self, requester_id: str) -> None:
        try:
            response = await self._client.put(
                self.role_url(requester_id),
                headers={**self._headers, "X-Audit-Log-Reason": "Purchase redeemed"},
            )
        except httpx.HTTPError as e:
            raise GrantError(f"Role request for {requester_id} failed: {e}") from e

        if not response.is_success:
            raise GrantError(
                f"Role request for {requester_id} returned HTTP {response.status_code}: {response.text[:200]}"
            )
        logger.info(f"[Grant] Role {self.role_id} assigned to {requester_id}")

    async def aclose(self) -> None:
        await self._client.aclose()
