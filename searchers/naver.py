# searchers/naver.py
import math
import os
from typing import Any, Dict, Iterator, List, Optional

import requests
from bs4 import BeautifulSoup

from shop.errors import ExternalServiceError
from shop.logger import get_logger
from shop.models import Item

logger = get_logger(__name__)

NAVER_BASE_URL = os.getenv("NAVER_BASE_URL", "https://openapi.naver.com").rstrip("/")
NAVER_CLIENT_ID = os.getenv("NAVER_CLIENT_ID", "").strip()
NAVER_CLIENT_SECRET = os.getenv("NAVER_CLIENT_SECRET", "").strip()
SEARCH_DISPLAY = int(os.getenv("SEARCH_DISPLAY", "15"))
SEARCH_TIMEOUT = float(os.getenv("SEARCH_TIMEOUT", "5"))

SHOP_SEARCH_PATH = "/v1/search/shop.json"


def clean_title(raw: str) -> str:
    """Strip the <b> highlight tags and HTML entities Naver puts in titles."""
    if "<" not in raw and "&" not in raw:
        return raw.strip()
    return BeautifulSoup(raw, "html.parser").get_text().strip()


def parse_price(value: Any) -> int:
    """lprice arrives as a string of digits ("12900"); accept ints too."""
    if isinstance(value, bool):
        raise ValueError(f"Unexpected price {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        number = value
    else:
        s = str(value).strip().replace(",", "")
        if not s:
            raise ValueError("Empty price")
        number = float(s)
    if not math.isfinite(number):
        raise ValueError(f"Non-finite price {value!r}")
    return int(round(number))


def _required_text(raw: Dict[str, Any], key: str) -> str:
    value = raw[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string, got {value!r}")
    return value


def parse_item(raw: Dict[str, Any]) -> Item:
    """Turn one entry of the response's ``items`` list into an Item."""
    title = clean_title(_required_text(raw, "title"))
    if not title:
        raise ValueError(f"title is empty after removing markup: {raw['title']!r}")
    return Item(
        title=title,
        link=_required_text(raw, "link").strip(),
        image=str(raw.get("image") or ""),
        lowest_price=parse_price(raw["lprice"]),
    )


class NaverSearchClient:
    """
    Naver shopping search. ``search()`` makes one request per call and yields
    Items in the provider's relevance order.
    """

    def __init__(
        self,
        client_id: str = NAVER_CLIENT_ID,
        client_secret: str = NAVER_CLIENT_SECRET,
        session: Optional[requests.Session] = None,
        display: int = SEARCH_DISPLAY,
        timeout: float = SEARCH_TIMEOUT,
        base_url: str = NAVER_BASE_URL,
    ):
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "X-Naver-Client-Id": client_id,
                "X-Naver-Client-Secret": client_secret,
            }
        )
        self.display = display
        self.timeout = timeout
        self.url = f"{base_url}{SHOP_SEARCH_PATH}"
        if not (client_id and client_secret):
            logger.warning("Naver credentials not configured; searches will be rejected.")

    def _fetch(self, query: str) -> List[Dict[str, Any]]:
        params = {"display": self.display, "query": query}
        logger.debug("Naver search: %s params=%s", self.url, params)
        try:
            resp = self.session.get(self.url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalServiceError(query, e) from e

        logger.info("Naver search '%s' -> HTTP %s", query, resp.status_code)
        if resp.status_code != 200:
            raise ExternalServiceError(query, f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            body = resp.json()
        except ValueError as e:
            raise ExternalServiceError(query, f"invalid JSON body: {e}") from e

        items = body.get("items") if isinstance(body, dict) else None
        if not isinstance(items, list):
            raise ExternalServiceError(query, "response has no 'items' list")
        return items

    def search(self, query: str) -> Iterator[Item]:
        raw_items = self._fetch(query)
        return self._iter_items(query, raw_items)

    def _iter_items(self, query: str, raw_items: List[Dict[str, Any]]) -> Iterator[Item]:
        for raw in raw_items:
            if not isinstance(raw, dict):
                raise ExternalServiceError(query, f"unexpected item {raw!r}")
            try:
                yield parse_item(raw)
            except (KeyError, TypeError, ValueError, OverflowError) as e:
                raise ExternalServiceError(query, f"malformed item: {e!r}") from e
