import pytest
import requests

import searchers
from searchers import get_default_client, get_search_client, search_items
from searchers.naver import NaverSearchClient, clean_title, parse_price
from searchers.retrying import RetryingSearchClient
from shop.errors import ExternalServiceError
from shop.models import Item


class DummyResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class DummySession:
    def __init__(self, response=None, exc=None):
        self.headers = {}
        self.response = response
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


NAVER_BODY = {
    "total": 2,
    "items": [
        {
            "title": "로지텍 <b>Wireless Mouse</b> M185 &amp; receiver",
            "link": "https://search.shopping.naver.com/gate.nhn?id=1",
            "image": "https://shopping-phinf.pstatic.net/1.jpg",
            "lprice": "12900",
            "hprice": "",
            "mallName": "네이버",
        },
        {
            "title": "Wireless Mouse",
            "link": "https://search.shopping.naver.com/gate.nhn?id=2",
            "image": "https://shopping-phinf.pstatic.net/2.jpg",
            "lprice": 15000,
        },
    ],
}


def _client(session, **kwargs):
    return NaverSearchClient(client_id="id", client_secret="secret", session=session, **kwargs)


def test_search_parses_items_in_order():
    session = DummySession(DummyResponse(payload=NAVER_BODY))

    items = list(_client(session).search("Wireless Mouse"))

    assert items == [
        Item(
            title="로지텍 Wireless Mouse M185 & receiver",
            link="https://search.shopping.naver.com/gate.nhn?id=1",
            image="https://shopping-phinf.pstatic.net/1.jpg",
            lowest_price=12900,
        ),
        Item(
            title="Wireless Mouse",
            link="https://search.shopping.naver.com/gate.nhn?id=2",
            image="https://shopping-phinf.pstatic.net/2.jpg",
            lowest_price=15000,
        ),
    ]


def test_search_sends_query_credentials_and_timeout():
    session = DummySession(DummyResponse(payload={"items": []}))

    list(_client(session, display=15, timeout=3).search("mouse"))

    call = session.calls[0]
    assert call["url"] == "https://openapi.naver.com/v1/search/shop.json"
    assert call["params"] == {"display": 15, "query": "mouse"}
    assert call["timeout"] == 3
    assert session.headers["X-Naver-Client-Id"] == "id"
    assert session.headers["X-Naver-Client-Secret"] == "secret"


def test_each_search_is_one_request():
    session = DummySession(DummyResponse(payload=NAVER_BODY))
    client = _client(session)

    client.search("a")
    client.search("b")

    assert [c["params"]["query"] for c in session.calls] == ["a", "b"]


@pytest.mark.parametrize(
    "session",
    [
        DummySession(exc=requests.ConnectionError("refused")),
        DummySession(exc=requests.Timeout("read timed out")),
        DummySession(DummyResponse(status_code=429, payload={}, text="rate limited")),
        DummySession(DummyResponse(status_code=200, payload=None, text="<html>")),
        DummySession(DummyResponse(payload={"errorCode": "SE01"})),
        DummySession(DummyResponse(payload=["not", "an", "object"])),
    ],
)
def test_failures_become_external_service_error(session):
    with pytest.raises(ExternalServiceError) as exc_info:
        list(_client(session).search("mouse"))
    assert exc_info.value.query == "mouse"
    assert exc_info.value.cause


def test_malformed_item_raises_while_iterating():
    body = {"items": [{"title": "ok", "link": "l", "image": "i", "lprice": "1"}, {"title": "no price"}]}
    items = _client(DummySession(DummyResponse(payload=body))).search("q")

    assert next(items).lowest_price == 1
    with pytest.raises(ExternalServiceError):
        next(items)


def test_clean_title_and_parse_price():
    assert clean_title("<b>Mouse</b> pad") == "Mouse pad"
    assert clean_title("plain") == "plain"
    assert parse_price("12,900") == 12900
    assert parse_price(7) == 7
    with pytest.raises(ValueError):
        parse_price("")


@pytest.mark.parametrize("lprice", ["Infinity", "-inf", "NaN", "1e400", float("inf"), float("nan")])
def test_non_finite_price_is_a_provider_error(lprice):
    body = {"items": [{"title": "Mouse", "link": "l", "image": "i", "lprice": lprice}]}

    with pytest.raises(ExternalServiceError) as exc_info:
        list(_client(DummySession(DummyResponse(payload=body))).search("mouse"))
    assert exc_info.value.query == "mouse"


def test_parse_price_rejects_non_finite():
    for value in ("Infinity", "1e400", float("-inf")):
        with pytest.raises(ValueError):
            parse_price(value)
    assert parse_price(12900.4) == 12900


@pytest.mark.parametrize(
    "raw",
    [
        {"title": None, "link": "l", "image": "i", "lprice": "1"},
        {"title": "Mouse", "link": None, "image": "i", "lprice": "1"},
        {"title": "   ", "link": "l", "image": "i", "lprice": "1"},
        {"title": "Mouse", "link": "", "image": "i", "lprice": "1"},
        {"title": "<b></b>", "link": "l", "image": "i", "lprice": "1"},
        {"title": 123, "link": "l", "image": "i", "lprice": "1"},
    ],
)
def test_missing_title_or_link_is_a_provider_error(raw):
    with pytest.raises(ExternalServiceError):
        list(_client(DummySession(DummyResponse(payload={"items": [raw]}))).search("q"))


def test_null_image_becomes_empty_string():
    raw = {"title": "Mouse", "link": "l", "image": None, "lprice": "1"}
    items = list(_client(DummySession(DummyResponse(payload={"items": [raw]}))).search("q"))
    assert items[0].image == ""


class FlakySearch:
    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    def search(self, query):
        self.calls += 1
        if self.calls <= self.failures:
            raise ExternalServiceError(query, "temporary")
        return iter([Item(title=query, link="l", image="i", lowest_price=10)])


def test_retrying_client_recovers():
    inner = FlakySearch(failures=2)
    client = RetryingSearchClient(inner, attempts=3, initial_wait=0, max_wait=0)

    items = list(client.search("q"))

    assert inner.calls == 3
    assert items[0].lowest_price == 10


def test_retrying_client_reraises_last_error():
    inner = FlakySearch(failures=5)
    client = RetryingSearchClient(inner, attempts=2, initial_wait=0, max_wait=0)

    with pytest.raises(ExternalServiceError):
        client.search("q")
    assert inner.calls == 2


def test_get_search_client_registry():
    assert isinstance(get_search_client("naver", max_attempts=1), NaverSearchClient)
    assert isinstance(get_search_client("naver", max_attempts=3), RetryingSearchClient)
    with pytest.raises(ValueError):
        get_search_client("nope")


def test_search_items_surfaces_errors():
    with pytest.raises(ExternalServiceError):
        search_items("q", client=FlakySearch(failures=1))
    assert [i.title for i in search_items("q", client=FlakySearch(failures=0))] == ["q"]


def test_search_items_reuses_one_default_client(monkeypatch):
    built = []

    def factory():
        client = FlakySearch(failures=0)
        built.append(client)
        return client

    monkeypatch.setattr(searchers, "_default_client", None)
    monkeypatch.setitem(searchers.SEARCHERS, searchers.SEARCH_PROVIDER, factory)

    search_items("a")
    search_items("b")

    assert len(built) == 1
    assert built[0].calls == 2
    assert get_default_client() is built[0]
