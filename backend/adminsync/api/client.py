"""
REST client for the upstream admin API.

Used when the socket path is not live, and for every mutating admin action.
All calls carry the bearer token; failures raise AdminApiError with the
server's message when it sent one.
"""

import asyncio
from typing import Any, Dict, Optional, Type

import aiohttp
from loguru import logger
from pydantic import BaseModel, ValidationError

from adminsync.errors import AdminApiError
from adminsync.models.events import GameProfilesPayload, GameStatisticsPayload, PendingWithdrawalsPayload
from adminsync.sync.tokens import TokenProvider


class AdminApiClient:
    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        games_prefix: str = "/api/admin/games",
        withdrawals_prefix: str = "/api/admin/withdrawals",
        timeout_seconds: float = 15.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.games_endpoint = f"{self.base_url}{games_prefix}"
        self.withdrawals_endpoint = f"{self.base_url}{withdrawals_prefix}"
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _auth_headers(self, include_content_type: bool = False) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token_provider.get_token()}"}
        if include_content_type:
            headers["Content-Type"] = "application/json"
        return headers

    async def _request(self, method: str, url: str, failure: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = self._auth_headers(include_content_type=body is not None)
        session = await self._get_session()
        try:
            async with session.request(method, url, json=body, headers=headers) as response:
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    data = None
                if response.status >= 400:
                    message = data.get("message") if isinstance(data, dict) else None
                    raise AdminApiError(message or failure, status_code=response.status)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"{method} {url} failed: {e}")
            raise AdminApiError(failure) from e

        if not isinstance(data, dict):
            raise AdminApiError(f"{failure}: malformed response", status_code=response.status)
        if not data.get("success"):
            raise AdminApiError(data.get("message") or failure, status_code=response.status)
        return data

    @staticmethod
    def _parse(payload_type: Type[BaseModel], data: Dict[str, Any], failure: str):
        try:
            return payload_type.model_validate(data)
        except ValidationError as e:
            logger.error(f"{failure}: {e.error_count()} invalid field(s) in response")
            raise AdminApiError(f"{failure}: malformed response") from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def fetch_game_profiles(self) -> GameProfilesPayload:
        logger.info("Fetching game profiles using REST API...")
        failure = "Failed to fetch game profiles"
        data = await self._request("GET", f"{self.games_endpoint}/profiles", failure)
        return self._parse(GameProfilesPayload, data, failure)

    async def fetch_game_statistics(self) -> GameStatisticsPayload:
        logger.info("Fetching game statistics using REST API...")
        failure = "Failed to fetch statistics"
        data = await self._request("GET", f"{self.games_endpoint}/statistics", failure)
        return self._parse(GameStatisticsPayload, data, failure)

    async def fetch_pending_withdrawals(self) -> PendingWithdrawalsPayload:
        logger.info("Fetching pending withdrawals using REST API...")
        failure = "Failed to fetch pending withdrawals"
        data = await self._request("GET", f"{self.withdrawals_endpoint}/pending", failure)
        return self._parse(PendingWithdrawalsPayload, data, failure)

    # ------------------------------------------------------------------
    # Game actions
    # ------------------------------------------------------------------
    async def assign_game_id(self, user_id: str, game_name: str, game_id: str) -> Dict[str, Any]:
        logger.info(f"Assigning game ID {game_id!r} to {user_id}/{game_name}")
        body = {"userId": user_id, "gameName": game_name, "gameId": game_id.strip()}
        return await self._request("POST", f"{self.games_endpoint}/assign-gameid", "Failed to assign Game ID", body)

    async def _game_action(self, action: str, user_id: str, game_name: str, failure: str) -> Dict[str, Any]:
        logger.info(f"{action} for user {user_id}, game {game_name}")
        body = {"userId": user_id, "gameName": game_name}
        return await self._request("POST", f"{self.games_endpoint}/{action}", failure, body)

    async def approve_credit(self, user_id: str, game_name: str) -> Dict[str, Any]:
        return await self._game_action("approve-credit", user_id, game_name, "Failed to approve credit")

    async def disapprove_credit(self, user_id: str, game_name: str) -> Dict[str, Any]:
        return await self._game_action("disapprove-credit", user_id, game_name, "Failed to disapprove credit")

    async def approve_redeem(self, user_id: str, game_name: str) -> Dict[str, Any]:
        return await self._game_action("approve-redeem", user_id, game_name, "Failed to approve redeem")

    async def disapprove_redeem(self, user_id: str, game_name: str) -> Dict[str, Any]:
        return await self._game_action("disapprove-redeem", user_id, game_name, "Failed to disapprove redeem")

    # ------------------------------------------------------------------
    # Withdrawal actions
    # ------------------------------------------------------------------
    async def approve_withdrawal(self, user_id: str, withdrawal_id: str, tx_hash: str = "") -> Dict[str, Any]:
        body = {"userId": user_id, "withdrawalId": withdrawal_id, "txHash": (tx_hash or "").strip() or None}
        return await self._request("POST", f"{self.withdrawals_endpoint}/approve", "Failed to approve withdrawal", body)

    async def disapprove_withdrawal(self, user_id: str, withdrawal_id: str) -> Dict[str, Any]:
        body = {"userId": user_id, "withdrawalId": withdrawal_id}
        return await self._request("POST", f"{self.withdrawals_endpoint}/disapprove", "Failed to reject withdrawal", body)
