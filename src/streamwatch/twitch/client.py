"""
Twitch Helix client producing snapshots of live streams for one game.

Uses an app access token (client credentials). A 401 drops the token so
the next fetch authenticates again.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import aiohttp

from ..directory.directory import Directory
from ..models.message import parse_timestamp
from ..models.stream import Snapshot, Stream, Tier
from ..utils.config import TwitchConfig
from ..utils.errors import TwitchError
from ..utils.logging import get_logger


logger = get_logger("streamwatch.twitch")

THUMBNAIL_SIZE = "440x248.jpg"
_USER_PREFIX = "live_user_"


@dataclass
class StreamFilter:
    """Tag and title keyword rules that mark a stream as matched."""
    tags: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.tags = [t.lower() for t in self.tags]
        self.keywords = [k.lower() for k in self.keywords]

    def matches(self, record: Dict[str, Any]) -> bool:
        record_tags = [str(t).lower() for t in (record.get("tags") or []) + (record.get("tag_ids") or [])]
        if any(tag in record_tags for tag in self.tags):
            return True
        title = (record.get("title") or "").lower()
        return any(keyword in title for keyword in self.keywords)


def stream_from_helix(record: Dict[str, Any], directory: Directory, stream_filter: StreamFilter) -> Stream:
    """Build a ``Stream`` from one Helix ``/streams`` record."""
    user = record["user_name"]
    thumbnail_url = record.get("thumbnail_url") or ""
    dash = thumbnail_url.rfind("-")
    slash = thumbnail_url.rfind("/")

    url_user = record.get("user_login") or ""
    if not url_user and dash > slash >= 0:
        # login is the only ascii form of names written in other scripts
        url_user = thumbnail_url[slash + 1 + len(_USER_PREFIX):dash]
    if not url_user:
        url_user = user.lower()

    thumbnail = thumbnail_url[:dash + 1] + THUMBNAIL_SIZE if dash >= 0 else thumbnail_url

    if user.lower() in directory:
        tier = Tier.KNOWN
    elif stream_filter.matches(record):
        tier = Tier.MATCHED
    else:
        tier = Tier.OTHER

    return Stream(
        user=user,
        url_user=url_user,
        title=record.get("title") or "",
        started_at=parse_timestamp(record["started_at"]),
        thumbnail=thumbnail,
        tier=tier,
    )


class TwitchClient:
    """Fetches every live stream of the configured game."""

    def __init__(
        self,
        config: TwitchConfig,
        directory: Directory,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config
        self.directory = directory
        self.filter = StreamFilter(config.filter_tags, config.filter_keywords)
        self._session = session
        self._owns_session = session is None
        self._token: Optional[str] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def authenticate(self) -> None:
        """Get an app access token, retrying until it succeeds."""
        while self._token is None:
            try:
                async with self._get_session().post(self.config.auth_url, params={
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "grant_type": "client_credentials",
                }) as resp:
                    if resp.status != 200:
                        raise TwitchError(f"HTTP {resp.status}: {await resp.text()}", status=resp.status)
                    data = await resp.json()
                self._token = data["access_token"]
                logger.info("twitch_authenticated")
            except (TwitchError, aiohttp.ClientError, asyncio.TimeoutError, KeyError) as e:
                logger.warning("twitch_auth_failed", error=str(e), retry_in=self.config.auth_retry_delay)
                await asyncio.sleep(self.config.auth_retry_delay)

    async def fetch(self) -> Snapshot:
        """
        All live streams, keyed by lowercase user name.

        Raises:
            TwitchError: a page could not be fetched; nothing is returned
        """
        await self.authenticate()
        snapshot: Snapshot = {}
        cursor = ""
        while True:
            params = {"game_id": self.config.game_id, "first": self.config.page_size}
            if cursor:
                params["after"] = cursor
            page = await self._get("/streams", params)
            for record in page.get("data") or []:
                stream = stream_from_helix(record, self.directory, self.filter)
                snapshot[stream.key] = stream
            cursor = (page.get("pagination") or {}).get("cursor") or ""
            if not cursor:
                break
        logger.debug("twitch_fetched", streams=len(snapshot))
        return snapshot

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Client-Id": self.config.client_id,
            "Authorization": f"Bearer {self._token}",
        }
        try:
            async with self._get_session().get(
                f"{self.config.api_base}{path}", params=params, headers=headers
            ) as resp:
                if resp.status == 401:
                    self._token = None
                if resp.status != 200:
                    raise TwitchError(f"HTTP {resp.status}: {await resp.text()}", status=resp.status)
                return await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TwitchError(f"GET {path} failed: {e}", cause=e) from e
