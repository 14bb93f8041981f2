"""
News fetch gateways.

Every gateway turns a ``(category, country, offset)`` request into a flat
:class:`NewsPage`. The World News API answers ``top`` with nested groups and
every other category with a flat list; that difference is resolved here and
never leaks to callers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

import requests

from newstype.core.articles import Article, NewsPage, QuotaSnapshot
from newstype.core.errors import CredentialRejectedError, TransportError, UpstreamError

logger = logging.getLogger(__name__)

CATEGORIES = ("top", "politics", "sports", "business", "technology", "entertainment")
COUNTRIES = {"us": "US (English)", "ca": "Canada (French)"}
PAGE_SIZE = 10
DEFAULT_API_BASE_URL = "https://api.worldnewsapi.com"
USER_AGENT = "NewsType/1.0"


def language_for(country: str) -> str:
    """Articles for Canada are requested in French, everything else in English."""
    return "fr" if country == "ca" else "en"


class NewsGateway(Protocol):
    """Contract every news source implements."""

    def fetch(self, category: str, country: str, offset: int, api_key: str) -> NewsPage:
        """Fetch one page of articles. Raises a ``NewsError`` subclass on failure."""


# ---------------------------------------------------------------------------
# Provider response shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TopNewsResponse:
    """``top-news`` answer: articles grouped into clusters."""

    groups: List[List[Dict[str, Any]]]

    def records(self) -> List[Dict[str, Any]]:
        return [record for group in self.groups for record in group]


@dataclass(frozen=True)
class SearchNewsResponse:
    """``search-news`` answer: a flat list with pagination counters."""

    news: List[Dict[str, Any]]
    offset: int = 0
    available: int = 0

    def records(self) -> List[Dict[str, Any]]:
        return list(self.news)


ProviderResponse = Union[TopNewsResponse, SearchNewsResponse]


def parse_provider_response(category: str, payload: Any) -> ProviderResponse:
    """Resolve the provider's shape for *category* into a tagged response."""
    if not isinstance(payload, dict):
        raise UpstreamError("Malformed response from news provider")
    if category == "top":
        raw_groups = payload.get("top_news")
        if not isinstance(raw_groups, list):
            raise UpstreamError("Malformed top news response: missing 'top_news'")
        groups = []
        for group in raw_groups:
            news = group.get("news") if isinstance(group, dict) else None
            if isinstance(news, list):
                groups.append(news)
        return TopNewsResponse(groups=groups)

    news = payload.get("news")
    if not isinstance(news, list):
        raise UpstreamError("Malformed search response: missing 'news'")
    return SearchNewsResponse(
        news=news,
        offset=int(payload.get("offset", 0) or 0),
        available=int(payload.get("available", 0) or 0),
    )


def parse_articles(records: List[Dict[str, Any]]) -> List[Article]:
    try:
        return [Article.from_payload(record) for record in records]
    except (TypeError, ValueError) as e:
        raise UpstreamError(f"Malformed article in response: {e}") from e


def quota_from_headers(headers: Mapping[str, str]) -> Optional[QuotaSnapshot]:
    """Read the quota headers, or None when the provider did not send them."""
    if headers.get("X-API-Quota-Left") is None:
        return None

    def _header(name: str) -> int:
        try:
            return int(headers.get(name) or 0)
        except (TypeError, ValueError):
            return 0

    return QuotaSnapshot(
        requested=_header("X-API-Quota-Request"),
        used=_header("X-API-Quota-Used"),
        remaining=_header("X-API-Quota-Left"),
    )


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message"):
            if body.get(key):
                return str(body[key])
    return f"News API responded with status: {resp.status_code}"


def _raise_for_status(resp: requests.Response) -> None:
    if resp.status_code in (401, 403):
        raise CredentialRejectedError(_error_message(resp), status_code=resp.status_code)
    if not 200 <= resp.status_code < 300:
        raise UpstreamError(_error_message(resp), status_code=resp.status_code)


# ---------------------------------------------------------------------------
# Gateways
# ---------------------------------------------------------------------------

class WorldNewsGateway:
    """Calls the World News API directly."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: float = 10,
        page_size: int = PAGE_SIZE,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._page_size = page_size
        self._session = session or requests.Session()

    def build_request(self, category: str, country: str, offset: int) -> tuple[str, Dict[str, Any]]:
        """Return the URL and query parameters for a page request.

        The API key travels in the x-api-key header, never in the URL.
        """
        language = language_for(country)
        if category == "top":
            url = f"{self._base_url}/top-news"
            params: Dict[str, Any] = {"source-country": country, "language": language}
        else:
            url = f"{self._base_url}/search-news"
            params = {
                "language": language,
                "source-country": country,
                "categories": category,
                "number": self._page_size,
                "offset": offset,
            }
        return url, params

    def fetch(self, category: str, country: str, offset: int, api_key: str) -> NewsPage:
        url, params = self.build_request(category, country, offset)
        logger.info("Requesting %s news for %s (offset %d)", category, country, offset)
        try:
            resp = self._session.get(
                url,
                params=params,
                timeout=self._timeout,
                headers={"User-Agent": USER_AGENT, "x-api-key": api_key},
            )
        except requests.RequestException as req_err:
            logger.error("Network error fetching %s news: %s", category, type(req_err).__name__)
            raise TransportError() from req_err

        _raise_for_status(resp)
        quota = quota_from_headers(resp.headers)
        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamError("News provider returned invalid JSON") from e

        articles = parse_articles(parse_provider_response(category, payload).records())
        logger.info(
            "Received %d %s articles, %s calls left",
            len(articles), category, quota.remaining if quota else "unknown",
        )
        return NewsPage(articles=articles, available=len(articles), quota=quota)


class RelayGateway:
    """Calls an HTTP relay that already speaks the flattened page shape.

    Success: ``{"data": {"news": [...], "available": n}, "quota": {...}}``.
    Failure: ``{"error": "..."}`` with a non-2xx status.
    """

    def __init__(self, relay_url: str, timeout: float = 10, session: Optional[requests.Session] = None) -> None:
        self._relay_url = relay_url
        self._timeout = timeout
        self._session = session or requests.Session()

    def fetch(self, category: str, country: str, offset: int, api_key: str) -> NewsPage:
        params = {"category": category, "country": country, "offset": offset}
        try:
            resp = self._session.get(
                self._relay_url,
                params=params,
                timeout=self._timeout,
                headers={"User-Agent": USER_AGENT, "X-Api-Key": api_key},
            )
        except requests.RequestException as req_err:
            logger.error("Network error reaching relay %s: %s", self._relay_url, type(req_err).__name__)
            raise TransportError("Could not reach the news relay.") from req_err

        _raise_for_status(resp)
        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamError("Relay returned invalid JSON") from e
        return page_from_relay(payload)


def page_from_relay(payload: Any) -> NewsPage:
    """Decode a relay response body."""
    if not isinstance(payload, dict):
        raise UpstreamError("Malformed relay response")
    if payload.get("error"):
        raise UpstreamError(str(payload["error"]))
    data = payload.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("news"), list):
        raise UpstreamError("Malformed relay response: missing 'data.news'")
    articles = parse_articles(data["news"])
    raw_quota = payload.get("quota")
    quota = QuotaSnapshot.from_relay(raw_quota) if isinstance(raw_quota, dict) else None
    return NewsPage(articles=articles, available=int(data.get("available", len(articles)) or 0), quota=quota)


_MOCK_ARTICLES: Dict[str, List[Dict[str, Dict[str, str]]]] = {
    "top": [
        {
            "en": {
                "title": "Global Climate Summit Addresses Key Issues",
                "text": (
                    "World leaders gather to discuss urgent climate action and set new emission targets. "
                    "In a historic meeting, representatives from over 190 countries have agreed to accelerate "
                    "efforts to combat climate change. Several major economies announced new targets that aim "
                    "to achieve carbon neutrality by 2050."
                ),
            },
            "fr": {
                "title": "Sommet mondial sur le changement climatique",
                "text": (
                    "Les dirigeants mondiaux se sont réunis pour discuter des actions urgentes contre le "
                    "changement climatique et fixer de nouveaux objectifs d'émission. Plusieurs grandes "
                    "économies ont annoncé de nouveaux objectifs visant à atteindre la neutralité carbone d'ici 2050."
                ),
            },
        },
        {
            "en": {
                "title": "New Study Shows Benefits of Mediterranean Diet",
                "text": (
                    "A comprehensive 10-year study has demonstrated significant health improvements among "
                    "participants following a traditional Mediterranean diet. Those who adhered to a diet rich "
                    "in olive oil, nuts, fruits, vegetables, and fish had a 30% lower risk of heart disease."
                ),
            },
            "fr": {
                "title": "Nouvelle étude sur les bienfaits du régime méditerranéen",
                "text": (
                    "Une étude complète de 10 ans a démontré des améliorations significatives de la santé chez "
                    "les participants suivant un régime méditerranéen traditionnel, riche en huile d'olive, "
                    "noix, fruits, légumes et poisson."
                ),
            },
        },
    ],
    "politics": [
        {
            "en": {
                "title": "Electoral Reform Debate Heats Up",
                "text": (
                    "Lawmakers debate a controversial bill that would fundamentally change the electoral system. "
                    "Supporters say the proposed changes would make elections more fair and accessible, while "
                    "critics argue they could favor one party over others."
                ),
            },
            "fr": {
                "title": "Débat sur la réforme électorale",
                "text": (
                    "Les législateurs débattent d'un projet de loi controversé qui modifierait fondamentalement "
                    "le système électoral. Des manifestations ont eu lieu dans plusieurs grandes villes."
                ),
            },
        },
        {
            "en": {
                "title": "New Poll Shows Shift in Public Opinion",
                "text": (
                    "A recent national poll indicates a significant shift in public opinion on several key "
                    "political issues. Voters are increasingly concerned about economic inequality and climate "
                    "change."
                ),
            },
            "fr": {
                "title": "Nouveau sondage montre un changement dans l'opinion publique",
                "text": (
                    "Un sondage national récent indique un changement significatif dans l'opinion publique sur "
                    "plusieurs questions politiques clés."
                ),
            },
        },
    ],
}


def mock_relay_payload(category: str, country: str = "us", offset: int = 0, page_size: int = PAGE_SIZE) -> Dict[str, Any]:
    """Sample articles in the relay response shape, for running without an API key."""
    language = language_for(country)
    # Categories without their own samples reuse the politics set.
    pool = _MOCK_ARTICLES.get(category) or _MOCK_ARTICLES["politics"]
    base_id = 1 if pool is _MOCK_ARTICLES["top"] else 3
    news = [
        {
            "id": base_id + i,
            "title": entry[language]["title"],
            "text": entry[language]["text"],
            "url": f"https://example.com/news/{base_id + i}",
            "publish_date": "",
            "source_country": country,
            "language": language,
        }
        for i, entry in enumerate(pool)
    ][offset:offset + page_size]
    return {
        "data": {"news": news, "available": len(news)},
        "quota": QuotaSnapshot(requested=1, used=10, remaining=990).to_relay(),
    }


class MockNewsGateway:
    """Offline gateway serving a handful of built-in articles."""

    def __init__(self, page_size: int = PAGE_SIZE) -> None:
        self._page_size = page_size

    def fetch(self, category: str, country: str, offset: int, api_key: str) -> NewsPage:
        offset = 0 if category == "top" else offset
        return page_from_relay(mock_relay_payload(category, country, offset, self._page_size))
