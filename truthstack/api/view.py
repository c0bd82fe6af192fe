"""Presentation state for the analysis stack.

The pipeline never produces loading layers. While a request is in flight
the view shows a placeholder result whose loading layer title cycles through
LOADING_MESSAGES; when the request resolves the placeholder is replaced
wholesale. A newer request supersedes an older one: the older result is
discarded if it ever arrives.
"""

import logging
import threading
from collections import OrderedDict
from typing import List, Optional

from ..models.schemas import AnalysisResult, Claim, Layer, LayerKind

logger = logging.getLogger(__name__)

LOADING_MESSAGES = [
    "Scanning the global knowledge base...",
    "Cross-referencing credible sources...",
    "Identifying logical fallacies...",
    "Synthesizing the investigation...",
    "Formulating the final verdict...",
]


class ViewTicket:
    """Handle for one request displayed by a ResultView."""

    def __init__(self, token: int, placeholder: AnalysisResult):
        self.token = token
        self.placeholder = placeholder
        self.cancel_event = threading.Event()

    def should_stop(self) -> bool:
        return self.cancel_event.is_set()


class ResultView:
    """Owns the currently displayed result for one session."""

    def __init__(self, messages: Optional[List[str]] = None):
        self.messages = list(messages or LOADING_MESSAGES)
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[str] = None
        self.message_index = 0
        self._ticket: Optional[ViewTicket] = None
        self._next_token = 0
        self._lock = threading.Lock()

    @property
    def is_loading(self) -> bool:
        return self.result is not None and any(layer.is_loading for layer in self.result.layers)

    def _placeholder(self, claim: Claim) -> AnalysisResult:
        return AnalysisResult(
            claim=claim.text,
            layers=[
                Layer(id="claim", kind=LayerKind.CLAIM, title="The Claim", content=claim.text),
                Layer(
                    id="loading-1",
                    kind=LayerKind.INVESTIGATION,
                    title=self.messages[0],
                    is_loading=True,
                ),
            ],
        )

    def begin(self, claim: Claim) -> ViewTicket:
        """Show a placeholder for a new request, superseding any in flight.

        Returns:
            Ticket identifying the new request, holding the placeholder shown
        """
        with self._lock:
            if self._ticket is not None:
                self._ticket.cancel_event.set()
            self._next_token += 1
            self.message_index = 0
            self.error = None
            self.result = self._placeholder(claim)
            self._ticket = ViewTicket(self._next_token, self.result)
            return self._ticket

    def is_current(self, ticket: ViewTicket) -> bool:
        with self._lock:
            return self._ticket is ticket

    def tick(self) -> Optional[str]:
        """Advance the loading message and retitle the loading layer.

        Returns:
            The new title, or None when nothing is loading
        """
        with self._lock:
            if not self.is_loading:
                return None
            self.message_index = (self.message_index + 1) % len(self.messages)
            title = self.messages[self.message_index]
            layers = [
                layer.model_copy(update={"title": title}) if layer.is_loading else layer
                for layer in self.result.layers
            ]
            self.result = self.result.model_copy(update={"layers": layers})
            return title

    def resolve(self, ticket: ViewTicket, result: AnalysisResult) -> bool:
        """Display a finished result if its request is still current.

        Returns:
            False when the request was superseded and the result discarded
        """
        with self._lock:
            if self._ticket is not ticket:
                logger.info(f"Discarding result of superseded request {ticket.token}")
                return False
            self.result = result
            self._ticket = None
            return True

    def fail(self, ticket: ViewTicket, message: str) -> bool:
        """Display an error layer if the request is still current."""
        with self._lock:
            if self._ticket is not ticket:
                logger.info(f"Discarding failure of superseded request {ticket.token}")
                return False
            self.error = message
            self.result = AnalysisResult(
                claim=self.result.claim if self.result else "",
                layers=[Layer(
                    id="error",
                    kind=LayerKind.CLAIM,
                    title="Analysis Failed",
                    content=f"Error details: {message}",
                )],
            )
            self._ticket = None
            return True


class ViewRegistry:
    """ResultViews keyed by session id, oldest evicted first."""

    def __init__(self, max_sessions: int = 1000):
        self.max_sessions = max_sessions
        self._views: "OrderedDict[str, ResultView]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str) -> ResultView:
        with self._lock:
            view = self._views.pop(session_id, None) or ResultView()
            self._views[session_id] = view
            while len(self._views) > self.max_sessions:
                self._views.popitem(last=False)
            return view

    def __len__(self) -> int:
        return len(self._views)
