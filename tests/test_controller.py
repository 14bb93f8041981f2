"""Tests for newstype.core.controller – article cache, pagination and fetch outcomes."""

from __future__ import annotations

from typing import List, Optional, Union
from unittest.mock import MagicMock

import pytest
import requests

from newstype.core.articles import (
    ERROR_ID,
    LOAD_FAILED_MESSAGE,
    NO_NEWS_ID,
    QUOTA_EXCEEDED_ID,
    QUOTA_EXCEEDED_MESSAGE,
    Article,
    NewsPage,
    QuotaSnapshot,
)
from newstype.core.controller import ArticleController, CategoryStatus, FetchOutcome, FetchTicket
from newstype.core.errors import CredentialRejectedError, TransportError, UpstreamError
from newstype.core.gateway import WorldNewsGateway
from newstype.core.storage import CredentialStore, LocalStore


def _articles(start: int, count: int) -> List[Article]:
    return [Article(id=i, title=f"T{i}", text=f"text {i}", url=f"https://news/{i}") for i in range(start, start + count)]


class FakeGateway:
    """Gateway returning queued pages (or raising queued errors) and recording calls."""

    def __init__(self, *results: Union[NewsPage, Exception]) -> None:
        self.results = list(results)
        self.calls: List[tuple] = []

    def fetch(self, category: str, country: str, offset: int, api_key: str) -> NewsPage:
        self.calls.append((category, country, offset, api_key))
        result = self.results.pop(0) if self.results else NewsPage(articles=[], available=0)
        if isinstance(result, Exception):
            raise result
        return result


def _page(articles: List[Article], quota: Optional[QuotaSnapshot] = None) -> NewsPage:
    return NewsPage(articles=articles, available=len(articles), quota=quota)


@pytest.fixture()
def credentials(local_store: LocalStore) -> CredentialStore:
    store = CredentialStore(local_store)
    store.set("abcd1234efgh5678")
    return store


def _controller(gateway: FakeGateway, credentials: CredentialStore, **kwargs) -> ArticleController:
    return ArticleController(gateway, credentials, **kwargs)


# ---------------------------------------------------------------------------
# Initial load and category selection
# ---------------------------------------------------------------------------

class TestInitialLoad:
    def test_start_fetches_first_page(self, credentials):
        gw = FakeGateway(_page(_articles(1, 3)))
        c = _controller(gw, credentials)
        assert c.start() is FetchOutcome.OK
        assert gw.calls == [("top", "us", 0, "abcd1234efgh5678")]
        assert [a.id for a in c.articles()] == [1, 2, 3]
        assert c.current_article.id == 1
        assert c.article_source == "https://news/1"
        assert c.status() is CategoryStatus.READY
        assert not c.loading

    def test_select_uncached_category_fetches(self, credentials):
        gw = FakeGateway(_page(_articles(1, 2)), _page(_articles(10, 2)))
        c = _controller(gw, credentials)
        c.start()
        assert c.select_category("sports") is FetchOutcome.OK
        assert gw.calls[-1] == ("sports", "us", 0, "abcd1234efgh5678")
        assert [a.id for a in c.articles()] == [10, 11]

    def test_select_cached_category_reuses_cache(self, credentials):
        gw = FakeGateway(_page(_articles(1, 3)), _page(_articles(10, 2)))
        c = _controller(gw, credentials)
        c.start()
        c.advance()
        c.select_category("sports")
        assert c.select_category("top") is None
        assert len(gw.calls) == 2
        assert c.current_index == 0

    def test_caches_are_independent(self, credentials):
        gw = FakeGateway(_page(_articles(1, 3)), _page(_articles(10, 2)))
        c = _controller(gw, credentials)
        c.start()
        c.select_category("sports")
        assert [a.id for a in c.articles("top")] == [1, 2, 3]
        assert [a.id for a in c.articles("sports")] == [10, 11]

    def test_unknown_category(self, credentials):
        c = _controller(FakeGateway(), credentials)
        with pytest.raises(ValueError):
            c.select_category("weather")

    def test_unknown_country(self, credentials):
        c = _controller(FakeGateway(), credentials)
        with pytest.raises(ValueError):
            c.select_country("fr")

    def test_country_switch_keeps_category_cache(self, credentials):
        gw = FakeGateway(_page(_articles(1, 3)))
        c = _controller(gw, credentials)
        c.start()
        c.advance()
        assert c.select_country("ca") is None
        assert c.country == "ca"
        assert c.current_index == 0
        assert len(gw.calls) == 1

    def test_country_used_for_next_fetch(self, credentials):
        gw = FakeGateway(_page(_articles(1, 3)), _page(_articles(1, 3)))
        c = _controller(gw, credentials)
        c.start()
        c.select_country("ca")
        c.refresh()
        assert gw.calls[-1][1] == "ca"


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

class TestPagination:
    def test_full_page_means_more(self, credentials):
        c = _controller(FakeGateway(_page(_articles(0, 10))), credentials)
        c.start()
        p = c.pagination()
        assert p.has_more is True
        assert p.fetch_offset == 10

    def test_short_page_means_no_more(self, credentials):
        c = _controller(FakeGateway(_page(_articles(0, 3))), credentials)
        c.start()
        assert c.pagination().has_more is False

    def test_advance_within_cache(self, credentials):
        gw = FakeGateway(_page(_articles(0, 3)))
        c = _controller(gw, credentials)
        c.start()
        assert c.advance() is None
        assert c.current_index == 1
        assert len(gw.calls) == 1

    def test_advance_wraps_without_fetch_when_exhausted(self, credentials):
        gw = FakeGateway(_page(_articles(0, 3)))
        c = _controller(gw, credentials)
        c.start()
        c.advance()
        c.advance()
        assert c.current_index == 2
        assert c.advance() is None
        assert c.current_index == 0
        assert len(gw.calls) == 1

    def test_advance_at_end_fetches_next_page_and_wraps(self, credentials):
        gw = FakeGateway(_page(_articles(0, 10)), _page(_articles(10, 10)))
        c = _controller(gw, credentials, category="sports")
        c.start()
        for _ in range(9):
            c.advance()
        assert c.current_index == 9
        assert c.advance() is FetchOutcome.OK
        assert gw.calls[-1] == ("sports", "us", 10, "abcd1234efgh5678")
        assert len(c.articles()) == 20
        # Index wraps using the length seen before the fetch.
        assert c.current_index == 0
        assert c.pagination().fetch_offset == 20

    def test_top_always_requests_offset_zero(self, credentials):
        gw = FakeGateway(_page(_articles(0, 10)), _page(_articles(10, 10)))
        c = _controller(gw, credentials)
        c.start()
        for _ in range(10):
            c.advance()
        assert gw.calls[-1][2] == 0

    def test_empty_next_page_stops_paging(self, credentials):
        gw = FakeGateway(_page(_articles(0, 10)), _page([]))
        c = _controller(gw, credentials, category="sports")
        c.start()
        for _ in range(10):
            c.advance()
        assert c.pagination().has_more is False
        assert [a.id for a in c.articles()] == list(range(10))
        c.advance()
        assert len(gw.calls) == 2

    def test_refresh_resets_offset_and_index(self, credentials):
        gw = FakeGateway(_page(_articles(0, 10)), _page(_articles(50, 2)))
        c = _controller(gw, credentials, category="sports")
        c.start()
        c.advance()
        assert c.refresh() is FetchOutcome.OK
        assert gw.calls[-1][2] == 0
        assert [a.id for a in c.articles()] == [50, 51]
        assert c.current_index == 0
        assert c.pagination().fetch_offset == 2

    def test_pagination_returns_copy(self, credentials):
        c = _controller(FakeGateway(_page(_articles(0, 3))), credentials)
        c.start()
        c.pagination().current_index = 2
        assert c.current_index == 0


# ---------------------------------------------------------------------------
# Placeholders and failures
# ---------------------------------------------------------------------------

class TestFailures:
    def test_no_results_installs_no_news_placeholder(self, credentials):
        c = _controller(FakeGateway(_page([])), credentials, category="sports")
        assert c.start() is FetchOutcome.EMPTY
        articles = c.articles()
        assert len(articles) == 1
        assert articles[0].id == NO_NEWS_ID
        assert c.pagination().has_more is False
        assert c.error is None

    def test_upstream_failure_installs_error_placeholder(self, credentials):
        c = _controller(FakeGateway(UpstreamError("boom", status_code=500)), credentials)
        assert c.start() is FetchOutcome.FAILED
        assert [a.id for a in c.articles()] == [ERROR_ID]
        assert c.error == LOAD_FAILED_MESSAGE
        assert c.credential_error is None
        assert c.status() is CategoryStatus.ERROR
        assert not c.loading

    def test_unexpected_exception_is_caught(self, credentials):
        c = _controller(FakeGateway(RuntimeError("surprise")), credentials)
        assert c.start() is FetchOutcome.FAILED
        assert c.current_article.id == ERROR_ID

    def test_failed_next_page_keeps_cache(self, credentials):
        gw = FakeGateway(_page(_articles(0, 10)), UpstreamError("down"))
        c = _controller(gw, credentials, category="sports")
        c.start()
        for _ in range(10):
            c.advance()
        assert len(c.articles()) == 10
        assert c.error == LOAD_FAILED_MESSAGE
        assert c.status() is CategoryStatus.READY

    def test_success_clears_error(self, credentials):
        gw = FakeGateway(UpstreamError("down"), _page(_articles(0, 2)))
        c = _controller(gw, credentials)
        c.start()
        c.refresh()
        assert c.error is None
        assert [a.id for a in c.articles()] == [0, 1]

    def test_real_articles_replace_placeholder_on_append(self, credentials):
        gw = FakeGateway(UpstreamError("down"), _page(_articles(0, 2)))
        c = _controller(gw, credentials, category="sports")
        c.start()
        c.advance()
        assert [a.id for a in c.articles()] == [0, 1]
        assert c.current_article.id == 0


class TestNetworkFailures:
    def test_connection_refused_shows_generic_banner(self, local_store, caplog):
        creds = CredentialStore(local_store)
        creds.set("SECRETKEY123456")
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError(
            "HTTPConnectionPool(host='127.0.0.1', port=9): Max retries exceeded with url: "
            "/top-news?source-country=us&language=en&api-key=SECRETKEY123456"
        )
        c = ArticleController(WorldNewsGateway(base_url="http://127.0.0.1:9", session=session), creds)
        caplog.set_level("DEBUG")

        assert c.fetch_page(reset=True) is FetchOutcome.FAILED
        assert c.error == LOAD_FAILED_MESSAGE
        assert c.credential_error is None
        assert not c.credential_prompt_open
        assert c.current_article.id == ERROR_ID
        assert "SECRETKEY123456" not in caplog.text

    def test_transport_error_never_counts_as_rejection(self, credentials):
        c = _controller(FakeGateway(TransportError("api-key host unreachable")), credentials)
        assert c.start() is FetchOutcome.FAILED
        assert not c.credential_prompt_open
        assert c.error == LOAD_FAILED_MESSAGE

    def test_unexpected_error_text_not_logged(self, credentials, caplog):
        caplog.set_level("DEBUG")
        c = _controller(FakeGateway(RuntimeError("abcd1234efgh5678")), credentials)
        assert c.start() is FetchOutcome.FAILED
        assert "abcd1234efgh5678" not in caplog.text
        assert "RuntimeError" in caplog.text


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------

class TestQuota:
    def test_quota_recorded(self, credentials):
        quota = QuotaSnapshot(requested=1, used=10, remaining=990)
        c = _controller(FakeGateway(_page(_articles(0, 3), quota)), credentials)
        c.start()
        assert c.quota == quota
        assert c.can_navigate

    def test_exhausted_quota_blocks_network(self, credentials):
        quota = QuotaSnapshot(requested=1, used=10, remaining=0)
        gw = FakeGateway(_page(_articles(0, 3), quota))
        c = _controller(gw, credentials)
        c.start()
        assert not c.can_navigate
        assert c.refresh() is FetchOutcome.QUOTA_EXCEEDED
        assert len(gw.calls) == 1
        assert c.error == QUOTA_EXCEEDED_MESSAGE
        assert [a.id for a in c.articles()] == [0, 1, 2]

    def test_exhausted_quota_on_empty_category(self, credentials):
        quota = QuotaSnapshot(requested=1, used=10, remaining=0)
        gw = FakeGateway(_page(_articles(0, 3), quota))
        c = _controller(gw, credentials)
        c.start()
        assert c.select_category("sports") is FetchOutcome.QUOTA_EXCEEDED
        assert len(gw.calls) == 1
        assert [a.id for a in c.articles()] == [QUOTA_EXCEEDED_ID]

    def test_quota_snapshot_overwritten(self, credentials):
        gw = FakeGateway(
            _page(_articles(0, 3), QuotaSnapshot(1, 10, 990)),
            _page(_articles(0, 3), QuotaSnapshot(1, 11, 989)),
        )
        c = _controller(gw, credentials)
        c.start()
        c.refresh()
        assert c.quota.remaining == 989

    def test_blocked_refresh_returns_to_first_article(self, credentials):
        gw = FakeGateway(_page(_articles(0, 3), QuotaSnapshot(requested=1, used=10, remaining=0)))
        c = _controller(gw, credentials)
        c.start()
        c.advance()
        c.advance()
        assert c.current_index == 2
        assert c.refresh() is FetchOutcome.QUOTA_EXCEEDED
        assert c.current_index == 0
        assert [a.id for a in c.articles()] == [0, 1, 2]


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

class TestCredentials:
    def test_missing_key_opens_prompt_without_fetch(self, local_store):
        gw = FakeGateway(_page(_articles(0, 3)))
        c = _controller(gw, CredentialStore(local_store))
        assert c.start() is FetchOutcome.CREDENTIAL_REQUIRED
        assert c.credential_prompt_open
        assert gw.calls == []
        assert c.error is None
        assert c.status() is CategoryStatus.EMPTY

    def test_set_api_key_fetches(self, local_store):
        gw = FakeGateway(_page(_articles(0, 3)))
        c = _controller(gw, CredentialStore(local_store))
        c.start()
        assert c.set_api_key("  newkey123456  ") is FetchOutcome.OK
        assert not c.credential_prompt_open
        assert gw.calls[0][3] == "newkey123456"
        assert c.masked_api_key == "newk...3456"

    def test_blank_key_rejected(self, local_store):
        c = _controller(FakeGateway(), CredentialStore(local_store))
        with pytest.raises(ValueError, match="Please enter a valid API key"):
            c.set_api_key("   ")
        assert not c.has_api_key

    def test_set_key_with_articles_does_not_fetch(self, credentials):
        gw = FakeGateway(_page(_articles(0, 3)))
        c = _controller(gw, credentials)
        c.start()
        assert c.set_api_key("anotherkey99") is None
        assert len(gw.calls) == 1

    def test_rejected_key_reopens_prompt(self, credentials):
        gw = FakeGateway(CredentialRejectedError("Invalid API key provided", status_code=401))
        c = _controller(gw, credentials)
        assert c.start() is FetchOutcome.CREDENTIAL_REJECTED
        assert c.credential_prompt_open
        assert c.credential_error == "Invalid API key provided"
        assert c.error is None
        assert c.current_article.id == ERROR_ID

    def test_message_mentioning_key_is_rejection(self, credentials):
        c = _controller(FakeGateway(UpstreamError("api-key is not valid", status_code=402)), credentials)
        assert c.start() is FetchOutcome.CREDENTIAL_REJECTED
        assert c.credential_prompt_open

    def test_new_key_after_rejection_clears_error(self, credentials):
        gw = FakeGateway(CredentialRejectedError("bad api key"), _page(_articles(0, 2)))
        c = _controller(gw, credentials)
        c.start()
        assert c.set_api_key("goodkey12345") is FetchOutcome.OK
        assert c.credential_error is None
        assert [a.id for a in c.articles()] == [0, 1]

    def test_error_and_credential_error_exclusive(self, credentials):
        gw = FakeGateway(CredentialRejectedError("bad api key"), UpstreamError("down"))
        c = _controller(gw, credentials)
        c.start()
        assert c.credential_error and not c.error
        c.refresh()
        assert c.error and not c.credential_error

    def test_reset_api_key(self, credentials):
        c = _controller(FakeGateway(_page(_articles(0, 3))), credentials)
        c.start()
        c.reset_api_key()
        assert not c.has_api_key
        assert c.credential_prompt_open
        assert c.masked_api_key == ""

    def test_new_key_lifts_exhausted_quota(self, credentials):
        gw = FakeGateway(
            _page(_articles(0, 3), QuotaSnapshot(requested=1, used=10, remaining=0)),
            _page(_articles(10, 3), QuotaSnapshot(requested=1, used=1, remaining=999)),
        )
        c = _controller(gw, credentials)
        c.start()
        assert not c.can_navigate
        c.reset_api_key()
        assert c.quota is None
        c.set_api_key("NEWKEY67890")
        assert c.can_navigate
        assert c.refresh() is FetchOutcome.OK
        assert len(gw.calls) == 2
        assert gw.calls[-1][3] == "NEWKEY67890"
        assert c.quota.remaining == 999

    def test_same_key_keeps_quota(self, credentials):
        gw = FakeGateway(_page(_articles(0, 3), QuotaSnapshot(requested=1, used=10, remaining=0)))
        c = _controller(gw, credentials)
        c.start()
        c.set_api_key("abcd1234efgh5678")
        assert c.quota_exhausted
        assert c.refresh() is FetchOutcome.QUOTA_EXCEEDED

    def test_dismiss_prompt(self, local_store):
        c = _controller(FakeGateway(), CredentialStore(local_store))
        c.start()
        c.dismiss_credential_prompt()
        assert not c.credential_prompt_open


# ---------------------------------------------------------------------------
# Dispatched fetches and the single-flight guard
# ---------------------------------------------------------------------------

class TestDispatchedFetch:
    @pytest.fixture()
    def dispatched(self) -> List[FetchTicket]:
        return []

    def test_dispatcher_receives_ticket(self, credentials, dispatched):
        c = _controller(FakeGateway(), credentials, dispatcher=dispatched.append)
        assert c.start() is FetchOutcome.PENDING
        assert len(dispatched) == 1
        ticket = dispatched[0]
        assert (ticket.category, ticket.country, ticket.offset, ticket.reset) == ("top", "us", 0, True)
        assert c.loading
        assert c.is_loading("top")
        assert not c.can_navigate
        assert c.status() is CategoryStatus.LOADING

    def test_second_fetch_same_category_is_in_flight(self, credentials, dispatched):
        c = _controller(FakeGateway(), credentials, dispatcher=dispatched.append)
        c.start()
        assert c.refresh() is FetchOutcome.IN_FLIGHT
        assert len(dispatched) == 1

    def test_other_category_may_fetch_concurrently(self, credentials, dispatched):
        c = _controller(FakeGateway(), credentials, dispatcher=dispatched.append)
        c.start()
        assert c.select_category("sports") is FetchOutcome.PENDING
        assert len(dispatched) == 2

    def test_complete_applies_result(self, credentials, dispatched):
        c = _controller(FakeGateway(), credentials, dispatcher=dispatched.append)
        c.start()
        assert c.complete_fetch(dispatched[0], page=_page(_articles(0, 3))) is FetchOutcome.OK
        assert not c.loading
        assert [a.id for a in c.articles()] == [0, 1, 2]

    def test_complete_for_background_category(self, credentials, dispatched):
        c = _controller(FakeGateway(), credentials, dispatcher=dispatched.append)
        c.start()
        c.select_category("sports")
        c.complete_fetch(dispatched[0], page=_page(_articles(0, 3)))
        assert [a.id for a in c.articles("top")] == [0, 1, 2]
        assert c.articles() == []

    def test_complete_with_error(self, credentials, dispatched):
        c = _controller(FakeGateway(), credentials, dispatcher=dispatched.append)
        c.start()
        assert c.complete_fetch(dispatched[0], error=UpstreamError("down")) is FetchOutcome.FAILED
        assert c.current_article.id == ERROR_ID

    def test_stale_ticket_ignored(self, credentials, dispatched):
        c = _controller(FakeGateway(), credentials, dispatcher=dispatched.append)
        c.start()
        ticket = dispatched[0]
        c.complete_fetch(ticket, page=_page(_articles(0, 3)))
        assert c.complete_fetch(ticket, page=_page(_articles(9, 1))) is FetchOutcome.STALE
        assert [a.id for a in c.articles()] == [0, 1, 2]

    def test_advance_while_fetching_wraps(self, credentials, dispatched):
        c = _controller(FakeGateway(), credentials, category="sports", dispatcher=dispatched.append)
        c.start()
        c.complete_fetch(dispatched[0], page=_page(_articles(0, 10)))
        for _ in range(9):
            c.advance()
        assert c.advance() is FetchOutcome.PENDING
        assert c.current_index == 0
        assert dispatched[-1].offset == 10
        c.complete_fetch(dispatched[-1], page=_page(_articles(10, 10)))
        assert len(c.articles()) == 20

    def test_begin_fetch_without_key(self, local_store):
        c = _controller(FakeGateway(), CredentialStore(local_store))
        assert c.begin_fetch(reset=True) is FetchOutcome.CREDENTIAL_REQUIRED

    def test_run_executes_ticket(self, credentials):
        gw = FakeGateway(_page(_articles(0, 2)))
        c = _controller(gw, credentials)
        ticket = c.begin_fetch(reset=True)
        assert isinstance(ticket, FetchTicket)
        assert c.run(ticket) is FetchOutcome.OK
        assert len(gw.calls) == 1
