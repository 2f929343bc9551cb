import asyncio
import logging
from collections import deque
from typing import Dict, List, Optional

from ..config import settings
from ..errors import AxonError, NotFoundError
from .models import ApiRequest, FavoriteRequest, HistoryItem, ResponseSnapshot, auth_to_dict

logger = logging.getLogger(__name__)


def _history_payload(item: HistoryItem) -> Dict:
    payload = {
        "url": item.url,
        "method": item.method,
        "headers": dict(item.headers),
        "body": item.body,
    }
    response = item.response
    if response is not None:
        payload.update(
            response_status=response.status,
            response_status_text=response.status_text,
            response_headers=dict(response.headers),
            response_body=response.data,
            response_time_ms=response.duration,
        )
        if response.error and isinstance(response.data, dict):
            payload["error_message"] = response.data.get("error")
    return payload


class History:
    """Append-only log of executions; reads are newest first.

    Items are immutable. Only the newest ``limit`` are kept. When a remote is
    given, each append is mirrored to it; a failed mirror is logged and the
    local item stays.
    """

    def __init__(self, limit: int = None, remote=None):
        self.limit = limit or settings.history_limit
        self.remote = remote
        self._items = deque(maxlen=self.limit)

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[HistoryItem]:
        return list(reversed(self._items))

    def append(self, item: HistoryItem) -> HistoryItem:
        self._items.append(item)
        if self.remote is not None:
            try:
                self.remote.record_history(_history_payload(item))
            except AxonError as exc:
                logger.warning("Could not sync history item %s: %s", item.id, exc.message)
        return item

    async def append_async(self, item: HistoryItem) -> HistoryItem:
        """Same as ``append``, with the remote mirror run in a worker thread.

        The item is visible locally before the mirror starts, so concurrent
        executions keep completion order.
        """
        self._items.append(item)
        if self.remote is not None:
            try:
                await asyncio.to_thread(self.remote.record_history, _history_payload(item))
            except AxonError as exc:
                logger.warning("Could not sync history item %s: %s", item.id, exc.message)
        return item

    def record(self, url: str, method: str, headers: Dict[str, str], body=None,
               response: Optional[ResponseSnapshot] = None) -> HistoryItem:
        return self.append(HistoryItem.record(url, method, headers, body, response))

    def get(self, item_id: str) -> HistoryItem:
        for item in self._items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"History item {item_id} not found")

    def delete(self, item_id: str) -> None:
        self._items.remove(self.get(item_id))

    def clear(self) -> None:
        self._items.clear()


class Favorites:
    """Frozen copies of requests, grouped by folder."""

    def __init__(self, remote=None):
        self.remote = remote
        self._items: Dict[str, FavoriteRequest] = {}

    @property
    def items(self) -> List[FavoriteRequest]:
        return sorted(self._items.values(), key=lambda fav: fav.created_at, reverse=True)

    def add(self, request: ApiRequest, folder: str = "Default") -> FavoriteRequest:
        favorite = FavoriteRequest.from_request(request, folder=folder or "Default")
        self._items[favorite.id] = favorite
        if self.remote is not None:
            try:
                self.remote.add_favorite(
                    {
                        "name": favorite.name,
                        "url": favorite.url,
                        "method": favorite.method,
                        "params": dict(favorite.query_params),
                        "headers": dict(favorite.headers),
                        "body": favorite.body,
                        "auth": auth_to_dict(favorite.auth),
                        "folder": favorite.folder,
                    }
                )
            except AxonError as exc:
                logger.warning("Could not sync favorite %s: %s", favorite.name, exc.message)
        return favorite

    def get(self, favorite_id: str) -> FavoriteRequest:
        try:
            return self._items[favorite_id]
        except KeyError:
            raise NotFoundError(f"Favorite {favorite_id} not found") from None

    def remove(self, favorite_id: str) -> None:
        self.get(favorite_id)
        del self._items[favorite_id]

    def in_folder(self, folder: str) -> List[FavoriteRequest]:
        return [fav for fav in self.items if fav.folder == folder]

    def folders(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for favorite in self._items.values():
            counts[favorite.folder] = counts.get(favorite.folder, 0) + 1
        return counts
