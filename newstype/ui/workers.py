"""Background fetch worker running gateway calls off the UI thread."""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, QRunnable, Signal

from newstype.core.controller import FetchTicket
from newstype.core.gateway import NewsGateway

logger = logging.getLogger(__name__)


class FetchSignals(QObject):
    finished = Signal(object, object)  # ticket, NewsPage
    failed = Signal(object, object)  # ticket, exception


class FetchWorker(QRunnable):
    """Performs one :class:`FetchTicket` and reports back through :class:`FetchSignals`."""

    def __init__(self, gateway: NewsGateway, ticket: FetchTicket) -> None:
        super().__init__()
        self.gateway = gateway
        self.ticket = ticket
        self.signals = FetchSignals()

    def run(self) -> None:
        ticket = self.ticket
        try:
            page = self.gateway.fetch(ticket.category, ticket.country, ticket.offset, ticket.api_key)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.debug("Fetch worker for %s failed: %s", ticket.category, e)
            self.signals.failed.emit(ticket, e)
            return
        self.signals.finished.emit(ticket, page)
