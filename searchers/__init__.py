# searchers/__init__.py
import os
from typing import List

from shop.logger import get_logger
from shop.models import Item

from . import naver
from .retrying import RetryingSearchClient

logger = get_logger(__name__)

SEARCH_PROVIDER = os.getenv("SEARCH_PROVIDER", "naver").strip().lower()
SEARCH_MAX_ATTEMPTS = int(os.getenv("SEARCH_MAX_ATTEMPTS", "1"))

SEARCHERS = {
    "naver": naver.NaverSearchClient,
}


def get_search_client(provider: str = SEARCH_PROVIDER, max_attempts: int = SEARCH_MAX_ATTEMPTS):
    factory = SEARCHERS.get(provider)
    if factory is None:
        raise ValueError(
            f"No search client registered for provider {provider!r}; "
            f"known: {', '.join(sorted(SEARCHERS))}"
        )
    client = factory()
    if max_attempts > 1:
        logger.info("Search calls will be retried up to %d times.", max_attempts)
        return RetryingSearchClient(client, attempts=max_attempts)
    return client


_default_client = None


def get_default_client():
    """The process-wide client; one requests.Session shared by every search."""
    global _default_client
    if _default_client is None:
        _default_client = get_search_client()
    return _default_client


def search_items(query: str, client=None) -> List[Item]:
    """
    Interactive search. Provider errors propagate to the caller as
    ExternalServiceError; there is no skip-and-continue here.
    """
    client = client or get_default_client()
    items = list(client.search(query))
    logger.info("Search '%s' returned %d item(s).", query, len(items))
    return items
