"""
Article cache and pagination.

The controller owns the per-category article lists, the reading position in
each list, fetch offsets and the last quota snapshot. It is the boundary
where every fetch failure is caught: after any fetch attempt the active
category is left with something displayable (real articles or a
placeholder) and errors are exposed as state, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Union

from newstype.core.articles import (
    LOAD_FAILED_MESSAGE,
    Article,
    NewsPage,
    QuotaSnapshot,
    error_placeholder,
    no_news_placeholder,
    quota_placeholder,
)
from newstype.core.errors import (
    CredentialMissingError,
    CredentialRejectedError,
    NewsError,
    QuotaExceededError,
    TransportError,
    UpstreamError,
    mentions_credential,
)
from newstype.core.gateway import CATEGORIES, COUNTRIES, PAGE_SIZE, NewsGateway
from newstype.core.storage import CredentialStore, mask_api_key

logger = logging.getLogger(__name__)


class CategoryStatus(Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class FetchOutcome(Enum):
    OK = "ok"
    EMPTY = "empty"
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    STALE = "stale"
    CREDENTIAL_REQUIRED = "credential_required"
    CREDENTIAL_REJECTED = "credential_rejected"
    QUOTA_EXCEEDED = "quota_exceeded"
    FAILED = "failed"


@dataclass
class PaginationState:
    current_index: int = 0
    fetch_offset: int = 0
    has_more: bool = True


@dataclass(frozen=True)
class FetchTicket:
    """A fetch that passed every local check and awaits the gateway."""

    token: int
    category: str
    country: str
    offset: int
    reset: bool
    api_key: str


Dispatcher = Callable[[FetchTicket], None]


def _is_credential_rejection(error: Optional[BaseException]) -> bool:
    if isinstance(error, CredentialRejectedError):
        return True
    # Transport failures have no response body to inspect.
    if isinstance(error, UpstreamError) and not isinstance(error, TransportError):
        return mentions_credential(str(error))
    return False


class ArticleController:
    """Per-category article cache with pagination, quota and credential handling.

    By default fetches run synchronously. When a *dispatcher* is given,
    :meth:`fetch_page` hands each :class:`FetchTicket` to it instead and the
    caller reports the result later through :meth:`complete_fetch`.
    """

    def __init__(
        self,
        gateway: NewsGateway,
        credentials: CredentialStore,
        page_size: int = PAGE_SIZE,
        category: str = "top",
        country: str = "us",
        categories: Sequence[str] = CATEGORIES,
        dispatcher: Optional[Dispatcher] = None,
    ) -> None:
        self._gateway = gateway
        self._credentials = credentials
        self._page_size = page_size
        self._categories = tuple(categories)
        self._validate_category(category)
        self._validate_country(country)
        self._category = category
        self._country = country
        self._dispatcher = dispatcher

        self._articles: Dict[str, List[Article]] = {}
        self._pagination: Dict[str, PaginationState] = {}
        self._status: Dict[str, CategoryStatus] = {}
        self._in_flight: Dict[str, int] = {}
        self._next_token = 1

        self._quota: Optional[QuotaSnapshot] = None
        self._error: Optional[str] = None
        self._credential_error: Optional[str] = None
        self._credential_prompt_open = False

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def categories(self) -> tuple:
        return self._categories

    @property
    def category(self) -> str:
        return self._category

    @property
    def country(self) -> str:
        return self._country

    @property
    def quota(self) -> Optional[QuotaSnapshot]:
        return self._quota

    @property
    def error(self) -> Optional[str]:
        """Message for the generic error banner."""
        return self._error

    @property
    def credential_error(self) -> Optional[str]:
        """Upstream message shown inside the credential prompt."""
        return self._credential_error

    @property
    def credential_prompt_open(self) -> bool:
        return self._credential_prompt_open

    @property
    def loading(self) -> bool:
        """Advisory flag: some fetch is outstanding."""
        return bool(self._in_flight)

    @property
    def quota_exhausted(self) -> bool:
        return self._quota is not None and self._quota.exhausted

    @property
    def can_navigate(self) -> bool:
        """Whether Next/Refresh should be enabled."""
        return not self.loading and not self.quota_exhausted

    @property
    def has_api_key(self) -> bool:
        return self._credentials.get() is not None

    @property
    def masked_api_key(self) -> str:
        return mask_api_key(self._credentials.get())

    def is_loading(self, category: Optional[str] = None) -> bool:
        return (category or self._category) in self._in_flight

    def articles(self, category: Optional[str] = None) -> List[Article]:
        return list(self._articles.get(category or self._category, []))

    def pagination(self, category: Optional[str] = None) -> PaginationState:
        return replace(self._pagination_for(category or self._category))

    def status(self, category: Optional[str] = None) -> CategoryStatus:
        return self._status.get(category or self._category, CategoryStatus.EMPTY)

    @property
    def current_index(self) -> int:
        return self._pagination_for(self._category).current_index

    @property
    def current_article(self) -> Optional[Article]:
        articles = self._articles.get(self._category, [])
        index = self.current_index
        if 0 <= index < len(articles):
            return articles[index]
        return None

    @property
    def article_source(self) -> str:
        article = self.current_article
        return article.url if article is not None else ""

    # ------------------------------------------------------------------
    # Selection and navigation
    # ------------------------------------------------------------------

    def start(self) -> Optional[FetchOutcome]:
        """Initial load for the active category."""
        return self._ensure_articles()

    def select_category(self, name: str) -> Optional[FetchOutcome]:
        """Switch category, fetching only when nothing is cached for it."""
        self._validate_category(name)
        self._category = name
        return self._ensure_articles()

    def select_country(self, code: str) -> Optional[FetchOutcome]:
        """Switch country. The cache is keyed by category only."""
        self._validate_country(code)
        self._country = code
        return self._ensure_articles()

    def advance(self) -> Optional[FetchOutcome]:
        """Move to the next article.

        At the end of the cache a next page is requested (when more may
        exist) and the index wraps using the length seen before that fetch,
        so the first article can show again while the page is on its way.
        """
        pagination = self._pagination_for(self._category)
        count = len(self._articles.get(self._category, []))
        outcome = None
        if pagination.current_index >= count - 1:
            if pagination.has_more:
                outcome = self.fetch_page(reset=False)
            pagination.current_index = (pagination.current_index + 1) % max(count, 1)
        else:
            pagination.current_index += 1
        return outcome

    def refresh(self) -> FetchOutcome:
        return self.fetch_page(reset=True)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def set_api_key(self, api_key: str) -> Optional[FetchOutcome]:
        """Store a new key, close the prompt and load news if none is showing."""
        api_key = (api_key or "").strip()
        if not api_key:
            raise ValueError("Please enter a valid API key")
        if api_key != self._credentials.get():
            self._quota = None
        self._credentials.set(api_key)
        self._credential_prompt_open = False
        self._credential_error = None
        if not self._has_real_articles(self._category):
            return self.fetch_page(reset=True)
        return None

    def reset_api_key(self) -> None:
        self._credentials.clear()
        self._quota = None
        self._credential_error = None
        self._credential_prompt_open = True

    def dismiss_credential_prompt(self) -> None:
        self._credential_prompt_open = False

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def fetch_page(self, reset: bool = False) -> FetchOutcome:
        """Fetch the next page (or the first page again, when *reset*) for the active category."""
        ticket = self.begin_fetch(reset)
        if isinstance(ticket, FetchOutcome):
            return ticket
        if self._dispatcher is not None:
            self._dispatcher(ticket)
            return FetchOutcome.PENDING
        return self.run(ticket)

    def begin_fetch(self, reset: bool = False) -> Union[FetchTicket, FetchOutcome]:
        """Run the local checks and register an in-flight fetch.

        Returns a ticket for the gateway call, or the outcome that stopped
        the fetch before any network activity.
        """
        category = self._category
        try:
            api_key = self._require_api_key()
            self._require_quota()
        except CredentialMissingError:
            logger.info("No API key stored; asking for one before fetching %s", category)
            self._credential_prompt_open = True
            return FetchOutcome.CREDENTIAL_REQUIRED
        except QuotaExceededError as e:
            logger.warning("Skipping %s fetch: %s", category, e)
            self._set_error(str(e))
            if reset:
                self._pagination_for(category).current_index = 0
                if not self._articles.get(category):
                    self._articles[category] = [quota_placeholder()]
                    self._status[category] = CategoryStatus.ERROR
            return FetchOutcome.QUOTA_EXCEEDED

        if category in self._in_flight:
            logger.debug("Fetch for %s already in flight; ignoring", category)
            return FetchOutcome.IN_FLIGHT

        pagination = self._pagination_for(category)
        if reset:
            pagination.fetch_offset = 0
            pagination.current_index = 0
            pagination.has_more = True
        offset = 0 if reset or category == "top" else pagination.fetch_offset

        self._error = None
        token = self._next_token
        self._next_token += 1
        self._in_flight[category] = token
        self._status[category] = CategoryStatus.LOADING
        logger.info("Fetching %s/%s at offset %d (reset=%s)", category, self._country, offset, reset)
        return FetchTicket(
            token=token,
            category=category,
            country=self._country,
            offset=offset,
            reset=reset,
            api_key=api_key,
        )

    def run(self, ticket: FetchTicket) -> FetchOutcome:
        """Call the gateway for *ticket* on the current thread and apply the result."""
        try:
            page = self._gateway.fetch(ticket.category, ticket.country, ticket.offset, ticket.api_key)
        except Exception as e:  # pylint: disable=broad-exception-caught
            return self.complete_fetch(ticket, error=e)
        return self.complete_fetch(ticket, page=page)

    def complete_fetch(
        self,
        ticket: FetchTicket,
        page: Optional[NewsPage] = None,
        error: Optional[BaseException] = None,
    ) -> FetchOutcome:
        """Apply a gateway result (or failure) for a ticket from :meth:`begin_fetch`."""
        category = ticket.category
        if self._in_flight.get(category) != ticket.token:
            logger.warning("Discarding stale result for %s (token %d)", category, ticket.token)
            return FetchOutcome.STALE
        del self._in_flight[category]

        if error is not None or page is None:
            return self._apply_failure(ticket, error)

        if page.quota is not None:
            self._quota = page.quota
        self._credential_error = None
        pagination = self._pagination_for(category)
        returned = len(page.articles)

        if returned:
            kept = [] if ticket.reset else [a for a in self._articles.get(category, []) if not a.is_placeholder]
            self._articles[category] = kept + list(page.articles)
            pagination.fetch_offset += returned
            pagination.has_more = returned >= self._page_size
            self._status[category] = CategoryStatus.READY
            logger.info("Cached %d %s articles (%d total)", returned, category, len(self._articles[category]))
            return FetchOutcome.OK

        if ticket.reset:
            self._articles[category] = [no_news_placeholder()]
        pagination.has_more = False
        self._status[category] = CategoryStatus.READY if self._articles.get(category) else CategoryStatus.EMPTY
        logger.info("No %s articles returned", category)
        return FetchOutcome.EMPTY

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_failure(self, ticket: FetchTicket, error: Optional[BaseException]) -> FetchOutcome:
        category = ticket.category
        message = str(error) if error is not None else ""
        if _is_credential_rejection(error):
            logger.warning(
                "News API rejected the API key for %s (status %s)", category, getattr(error, "status_code", None)
            )
            self._credential_error = message or "The API key was rejected."
            self._error = None
            self._credential_prompt_open = True
            outcome = FetchOutcome.CREDENTIAL_REJECTED
        else:
            logger.error(
                "Error fetching %s news: %s",
                category,
                message if isinstance(error, NewsError) else type(error).__name__,
            )
            self._set_error(LOAD_FAILED_MESSAGE)
            outcome = FetchOutcome.FAILED

        if ticket.reset:
            self._articles[category] = [error_placeholder()]
        self._status[category] = (
            CategoryStatus.READY
            if not ticket.reset and self._articles.get(category)
            else CategoryStatus.ERROR
        )
        return outcome

    def _set_error(self, message: str) -> None:
        self._error = message
        self._credential_error = None

    def _require_api_key(self) -> str:
        api_key = self._credentials.get()
        if api_key is None:
            raise CredentialMissingError()
        return api_key

    def _require_quota(self) -> None:
        if self.quota_exhausted:
            raise QuotaExceededError()

    def _ensure_articles(self) -> Optional[FetchOutcome]:
        if not self._articles.get(self._category):
            return self.fetch_page(reset=True)
        self._pagination_for(self._category).current_index = 0
        return None

    def _has_real_articles(self, category: str) -> bool:
        return any(not a.is_placeholder for a in self._articles.get(category, []))

    def _pagination_for(self, category: str) -> PaginationState:
        if category not in self._pagination:
            self._pagination[category] = PaginationState()
        return self._pagination[category]

    def _validate_category(self, name: str) -> None:
        if name not in self._categories:
            raise ValueError(f"Unknown category: {name!r}")

    def _validate_country(self, code: str) -> None:
        if code not in COUNTRIES:
            raise ValueError(f"Unknown country: {code!r}")
