# searchers/retrying.py
from typing import Iterator, List

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from shop.errors import ExternalServiceError
from shop.logger import get_logger
from shop.models import Item

logger = get_logger(__name__)


class RetryingSearchClient:
    """
    Retry a search client's failed calls with exponential backoff.

    Results are materialized inside the retry so that parse errors raised
    while iterating are retried too. After the last attempt the final
    ExternalServiceError is re-raised unchanged.
    """

    def __init__(self, inner, attempts: int = 3, initial_wait: float = 1, max_wait: float = 30):
        self.inner = inner
        self.attempts = attempts
        self.initial_wait = initial_wait
        self.max_wait = max_wait

    def _log_retry(self, retry_state):
        logger.warning(
            "Search attempt %d/%d failed: %s",
            retry_state.attempt_number,
            self.attempts,
            retry_state.outcome.exception(),
        )

    def search(self, query: str) -> Iterator[Item]:
        retrying = Retrying(
            retry=retry_if_exception_type(ExternalServiceError),
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential_jitter(initial=self.initial_wait, max=self.max_wait),
            before_sleep=self._log_retry,
            reraise=True,
        )
        items: List[Item] = retrying(lambda: list(self.inner.search(query)))
        return iter(items)
