"""Tests for the result view and the HTTP API."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from truthstack.agents.analyst import AnalystAgent
from truthstack.agents.debate import DebateAgent
from truthstack.api import main
from truthstack.api.view import LOADING_MESSAGES, ResultView, ViewRegistry
from truthstack.graph.orchestrator import TruthStackGraph
from truthstack.models.schemas import AnalysisResult, Claim, LayerKind
from truthstack.services.usage import InMemoryUsageRecorder


RESPONSE = """<investigation>### The Deep Dive
- Astronauts report it is not visible to the naked eye.</investigation>
<verdict>
STATUS: FALSE
CONFIDENCE: 0.9
SUMMARY: The wall is too narrow to see from orbit.
</verdict>
<questions><q>What can be seen from orbit?</q></questions>
<bias>{"politicalScore": 0, "scientificDeviation": 60, "emotionalCharge": 5, "commercialInterest": 0}</bias>
<category>Science</category>
<sources><s url="https://www.nasa.gov">NASA</s></sources>"""

DEBATE = '[{"speaker": "Pro", "text": "It is huge."}, {"speaker": "Con", "text": "It is narrow."}]'

CLAIM_TEXT = "The Great Wall of China is visible from space."


def event_names(body: str):
    return [
        line[len("event: "):]
        for line in body.splitlines()
        if line.startswith("event: ")
    ]


async def collect(events):
    return [chunk async for chunk in events]


class TestResultView:
    """Test loading placeholder and supersession."""

    def test_begin_shows_placeholder(self):
        """Test the placeholder stack for a new request."""
        view = ResultView()

        view.begin(Claim(text=CLAIM_TEXT))

        layers = view.result.layers
        assert [layer.id for layer in layers] == ["claim", "loading-1"]
        assert layers[0].content == CLAIM_TEXT
        assert layers[1].is_loading
        assert layers[1].title == LOADING_MESSAGES[0]
        assert view.is_loading

    def test_tick_cycles_and_wraps(self):
        """Test that the loading title cycles through every message."""
        view = ResultView()
        view.begin(Claim(text=CLAIM_TEXT))

        titles = [view.tick() for _ in range(len(LOADING_MESSAGES))]

        assert titles == LOADING_MESSAGES[1:] + LOADING_MESSAGES[:1]
        assert view.message_index == 0
        assert view.result.layers[0].title == "The Claim"

    def test_tick_without_loading(self):
        """Test that ticking an idle view does nothing."""
        assert ResultView().tick() is None

    def test_resolve_replaces_placeholder(self):
        """Test that a finished result replaces the placeholder wholesale."""
        view = ResultView()
        ticket = view.begin(Claim(text=CLAIM_TEXT))
        result = AnalysisResult(claim=CLAIM_TEXT)

        assert view.resolve(ticket, result)
        assert view.result is result
        assert not view.is_loading
        assert view.tick() is None

    def test_newer_request_supersedes(self):
        """Test that a stale result is discarded and its ticket cancelled."""
        view = ResultView()
        first = view.begin(Claim(text="first claim"))
        second = view.begin(Claim(text="second claim"))

        assert first.should_stop()
        assert not second.should_stop()
        assert not view.is_current(first)

        assert not view.resolve(first, AnalysisResult(claim="first claim"))
        assert view.result.claim == "second claim"
        assert view.is_loading

        assert view.resolve(second, AnalysisResult(claim="second claim"))
        assert view.result.claim == "second claim"
        assert not view.is_loading

    def test_ticket_keeps_its_own_placeholder(self):
        """Test that a ticket's placeholder survives a newer request."""
        view = ResultView()
        first = view.begin(Claim(text="first claim"))
        view.begin(Claim(text="second claim"))

        assert view.result.claim == "second claim"
        assert first.placeholder.claim == "first claim"
        assert first.placeholder.layers[1].is_loading

    def test_fail_shows_error_layer(self):
        """Test the error layer for a failed request."""
        view = ResultView()
        ticket = view.begin(Claim(text=CLAIM_TEXT))

        assert view.fail(ticket, "all models failed")

        layers = view.result.layers
        assert len(layers) == 1
        assert layers[0].id == "error"
        assert layers[0].title == "Analysis Failed"
        assert layers[0].content == "Error details: all models failed"
        assert view.error == "all models failed"

    def test_registry_evicts_oldest(self):
        """Test that sessions beyond the limit are evicted."""
        registry = ViewRegistry(max_sessions=2)
        first = registry.get("a")
        registry.get("b")
        registry.get("c")

        assert len(registry) == 2
        assert registry.get("c") is registry.get("c")
        assert registry.get("a") is not first


class TestAPI:
    """Test HTTP endpoints with a mocked backend."""

    @pytest.fixture
    def llm(self):
        llm = Mock()
        llm.agenerate = AsyncMock()
        return llm

    @pytest.fixture
    def graph(self, llm, monkeypatch):
        graph = TruthStackGraph(
            llm_service=llm,
            analyst=AnalystAgent(contract="structured"),
            debate_agent=DebateAgent(llm, models=["debate-model"]),
            usage_recorder=InMemoryUsageRecorder(),
            models=["old-model", "new-model"],
        )
        monkeypatch.setattr(main, "_graph_instance", graph)
        monkeypatch.setattr(main, "views", ViewRegistry())
        monkeypatch.setattr(main.settings, "API_KEY", "")
        main.rate_limit_storage.clear()
        yield graph
        graph.usage_emitter.shutdown(wait=True)

    @pytest.fixture
    def client(self, graph):
        return TestClient(main.app)

    def test_health(self, client):
        """Test the health endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_config(self, client):
        """Test that configuration is exposed without secrets."""
        body = client.get("/config").json()

        assert body["models"]
        assert "LLM_API_KEY" not in body

    def test_analyze(self, client, llm):
        """Test a successful analysis."""
        llm.agenerate.return_value = RESPONSE

        response = client.post("/analyze", json={"text": CLAIM_TEXT})

        assert response.status_code == 200
        body = response.json()
        assert [layer["kind"] for layer in body["layers"]] == [
            "claim", "investigation", "verdict", "reasoning"
        ]
        assert body["verdict"]["status"] == "FALSE"
        assert body["sources"] == [{"title": "NASA", "uri": "https://www.nasa.gov"}]
        assert body["bias"]["scientificDeviation"] == 60
        assert body["model_used"] == "old-model"

    def test_analyze_all_models_fail(self, client, llm):
        """Test that exhaustion maps to 502 with the last error."""
        llm.agenerate.side_effect = Exception("404 models/gemini-1.5-flash-002 is not found")

        response = client.post("/analyze", json={"text": CLAIM_TEXT})

        assert response.status_code == 502
        assert "new-model" in response.json()["detail"]
        assert "is not found" in response.json()["detail"]

    def test_analyze_rejects_empty_claim(self, client, llm):
        """Test that a claim without text or image is rejected."""
        response = client.post("/analyze", json={"text": "   "})

        assert response.status_code == 422
        llm.agenerate.assert_not_called()

    def test_analyze_rejects_long_text(self, client, llm):
        """Test the text length limit."""
        response = client.post("/analyze", json={"text": "x" * (main.settings.MAX_TEXT_LENGTH + 1)})

        assert response.status_code == 400

    def test_analyze_image_only(self, client, llm):
        """Test an image-only submission."""
        llm.agenerate.return_value = RESPONSE

        response = client.post("/analyze", json={"image": "data:image/png;base64,iVBORw0KGgo="})

        assert response.status_code == 200
        assert response.json()["claim"] == "Analyze the validity and bias of this image."

    def test_stream(self, client, llm):
        """Test the streamed event sequence."""
        llm.agenerate.return_value = RESPONSE

        response = client.post(
            "/analyze/stream",
            json={"text": CLAIM_TEXT},
            headers={"X-Session-Id": "session-1"},
        )

        assert response.status_code == 200
        names = event_names(response.text)
        assert names[:2] == ["start", "layers"]
        assert names[-1] == "complete"

    def test_stream_failure(self, client, llm):
        """Test that a failed stream ends with an error event."""
        llm.agenerate.side_effect = Exception("quota exceeded")

        response = client.post("/analyze/stream", json={"text": CLAIM_TEXT})

        assert event_names(response.text)[-1] == "error"
        assert "quota exceeded" in response.text

    def test_stream_superseded(self, graph, llm):
        """Test that a result arriving after a newer request is discarded."""
        view = ResultView()

        def answer_after_newer_request(*args, **kwargs):
            view.begin(Claim(text="newer claim"))
            return RESPONSE

        llm.agenerate.side_effect = answer_after_newer_request

        chunks = asyncio.run(collect(main.generate_sse_events(Claim(text=CLAIM_TEXT), view)))

        body = "".join(chunks)
        assert event_names(body)[-1] == "superseded"
        layers_event = body.split("event: layers", 1)[1].split("event: ", 1)[0]
        assert CLAIM_TEXT in layers_event
        assert "newer claim" not in layers_event
        assert view.result.claim == "newer claim"
        assert view.result.layer(LayerKind.INVESTIGATION).is_loading

    def test_debate(self, client, llm):
        """Test a debate transcript."""
        llm.agenerate.return_value = DEBATE

        response = client.post("/debate", json={"topic": CLAIM_TEXT})

        assert response.status_code == 200
        assert [t["speaker"] for t in response.json()["turns"]] == ["Pro", "Con"]
        assert llm.agenerate.call_args.kwargs["model"] == "debate-model"

    def test_debate_malformed(self, client, llm):
        """Test that a malformed transcript is an empty debate, not an error."""
        llm.agenerate.return_value = "Sorry, I can't do that."

        response = client.post("/debate", json={"topic": CLAIM_TEXT})

        assert response.status_code == 200
        assert response.json()["turns"] == []

    def test_usage_summary(self, client, graph, llm):
        """Test that completed analyses show up in the usage summary."""
        llm.agenerate.return_value = RESPONSE
        client.post("/analyze", json={"text": CLAIM_TEXT})
        graph.usage_emitter.shutdown(wait=True)

        body = client.get("/usage/summary").json()

        assert body["total"] == 1
        assert body["by_category"] == {"Science": 1}
        assert body["by_verdict"] == {"FALSE": 1}
        assert body["recent"][0]["source_count"] == 1

    def test_usage_summary_requires_memory_recorder(self, monkeypatch, llm):
        """Test 404 when usage goes to another sink."""
        graph = TruthStackGraph(
            llm_service=llm,
            analyst=AnalystAgent(contract="structured"),
            usage_emitter=Mock(),
            models=["m"],
        )
        monkeypatch.setattr(main, "_graph_instance", graph)
        monkeypatch.setattr(main.settings, "API_KEY", "")

        response = TestClient(main.app).get("/usage/summary")

        assert response.status_code == 404
