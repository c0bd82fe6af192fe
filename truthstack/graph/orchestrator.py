"""LangGraph orchestrator for the TruthStack analysis pipeline."""

import logging
import time
from typing import Callable, List, Optional, TypedDict, Union

from langgraph.graph import END, START, StateGraph

from ..agents.analyst import AnalystAgent
from ..agents.assembler import ResultAssembler, build_usage_record
from ..agents.debate import DebateAgent
from ..config import settings
from ..models.schemas import (
    AnalysisResult,
    Claim,
    DebateTurn,
    DecodedSections,
    ModelAttempt,
)
from ..services.fallback import ModelFallbackDriver
from ..services.llm_service import LLMService
from ..services.usage import UsageEmitter, UsageRecorder, get_usage_recorder

logger = logging.getLogger(__name__)


class AnalysisState(TypedDict, total=False):
    """State flowing through the analysis graph for one claim."""
    claim: Claim
    prompt: str
    raw_text: Optional[str]
    model_used: Optional[str]
    attempts: List[ModelAttempt]
    sections: Optional[DecodedSections]
    result: Optional[AnalysisResult]
    failure: Optional[Exception]
    should_stop: Optional[Callable[[], bool]]
    start_time: float


def create_initial_state(
    claim: Claim,
    should_stop: Optional[Callable[[], bool]] = None
) -> AnalysisState:
    """Create the initial state for an analysis run.

    Args:
        claim: The claim to analyze
        should_stop: Optional cancellation check for superseded requests

    Returns:
        Initial AnalysisState dictionary
    """
    return AnalysisState(
        claim=claim,
        prompt="",
        raw_text=None,
        model_used=None,
        attempts=[],
        sections=None,
        result=None,
        failure=None,
        should_stop=should_stop,
        start_time=time.time()
    )


class TruthStackGraph:
    """LangGraph-based orchestrator for the claim analysis pipeline.

    build_prompt -> generate -> decode_sections -> assemble_result
    -> record_usage. A generation failure ends the run early and `run`
    re-raises it to the caller.
    """

    def __init__(
        self,
        llm_service: Optional[LLMService] = None,
        analyst: Optional[AnalystAgent] = None,
        assembler: Optional[ResultAssembler] = None,
        debate_agent: Optional[DebateAgent] = None,
        usage_recorder: Optional[UsageRecorder] = None,
        usage_emitter: Optional[UsageEmitter] = None,
        models: Optional[List[str]] = None
    ):
        """Initialize the orchestrator with its collaborators.

        Args:
            llm_service: Shared LLM service instance
            analyst: Custom analyst agent (prompt contract)
            assembler: Custom result assembler
            debate_agent: Custom debate agent
            usage_recorder: Usage sink (defaults to settings)
            usage_emitter: Custom emitter (takes precedence over usage_recorder)
            models: Backend model identifiers, most preferred first
        """
        self.llm_service = llm_service or LLMService()
        self.models = list(models) if models is not None else settings.analysis_models()

        # Initialize agents (allow dependency injection)
        self.analyst = analyst or AnalystAgent()
        self.assembler = assembler or ResultAssembler()
        self.debate_agent = debate_agent or DebateAgent(self.llm_service)

        if usage_emitter is not None:
            self.usage_emitter = usage_emitter
        else:
            recorder = usage_recorder if usage_recorder is not None else get_usage_recorder()
            self.usage_emitter = UsageEmitter(recorder) if recorder is not None else None

        self.graph = self._build_graph(self._generate_node)
        self.compiled_graph = self.graph.compile()

        # Same pipeline with an awaiting generate node, used by arun
        self.async_graph = self._build_graph(self._agenerate_node)
        self.compiled_async_graph = self.async_graph.compile()

        logger.info(f"TruthStackGraph initialized with models: {', '.join(self.models)}")

    @property
    def usage_recorder(self) -> Optional[UsageRecorder]:
        return self.usage_emitter.recorder if self.usage_emitter else None

    def _build_graph(self, generate_node: Callable) -> StateGraph:
        """Build the LangGraph state machine.

        Args:
            generate_node: Sync or async node function for the generate step

        Returns:
            Configured StateGraph instance
        """
        graph = StateGraph(AnalysisState)

        graph.add_node("build_prompt", self._build_prompt_node)
        graph.add_node("generate", generate_node)
        graph.add_node("decode_sections", self._decode_sections_node)
        graph.add_node("assemble_result", self._assemble_result_node)
        graph.add_node("record_usage", self._record_usage_node)

        graph.add_edge(START, "build_prompt")
        graph.add_edge("build_prompt", "generate")

        # generate -> decode_sections, or END when every model failed
        graph.add_conditional_edges(
            "generate",
            self._route_after_generation,
            {
                "decode_sections": "decode_sections",
                "end": END
            }
        )

        graph.add_edge("decode_sections", "assemble_result")
        graph.add_edge("assemble_result", "record_usage")
        graph.add_edge("record_usage", END)

        return graph

    # ==================== Node Functions ====================

    def _build_prompt_node(self, state: AnalysisState) -> dict:
        """Build the analysis prompt for the claim."""
        claim = state["claim"]
        logger.info(f"Building {self.analyst.contract.value} prompt for: {claim.text[:50]}...")
        return {"prompt": self.analyst.build_prompt(claim)}

    def _generate_node(self, state: AnalysisState) -> dict:
        """Run the model fallback driver."""
        driver = ModelFallbackDriver(self.llm_service, models=self.models)

        try:
            outcome = driver.generate(
                state["prompt"],
                image=state["claim"].image,
                should_stop=state.get("should_stop")
            )
        except Exception as e:
            logger.error(f"Generation failed: {e}")
            return {"failure": e, "attempts": driver.attempts}

        return {
            "raw_text": outcome.text,
            "model_used": outcome.model,
            "attempts": outcome.attempts
        }

    async def _agenerate_node(self, state: AnalysisState) -> dict:
        """Run the model fallback driver against the async client."""
        driver = ModelFallbackDriver(self.llm_service, models=self.models)

        try:
            outcome = await driver.agenerate(
                state["prompt"],
                image=state["claim"].image,
                should_stop=state.get("should_stop")
            )
        except Exception as e:
            logger.error(f"Generation failed: {e}")
            return {"failure": e, "attempts": driver.attempts}

        return {
            "raw_text": outcome.text,
            "model_used": outcome.model,
            "attempts": outcome.attempts
        }

    def _decode_sections_node(self, state: AnalysisState) -> dict:
        """Decode the raw response into typed sections."""
        return {"sections": self.analyst.decode(state["raw_text"])}

    def _assemble_result_node(self, state: AnalysisState) -> dict:
        """Apply the guardrail and assemble the result."""
        result = self.assembler.assemble(
            state["claim"],
            state["sections"],
            model_used=state.get("model_used"),
            contract=self.analyst.contract,
            processing_time_seconds=time.time() - state["start_time"]
        )
        logger.info(
            f"Assembled result: {result.verdict.status.value} "
            f"(confidence: {result.confidence_score:.2f}, sources: {len(result.sources)})"
        )
        return {"result": result}

    def _record_usage_node(self, state: AnalysisState) -> dict:
        """Hand a usage summary to the emitter without waiting for it."""
        if self.usage_emitter is None:
            return {}

        try:
            record = build_usage_record(state["result"], has_image=state["claim"].has_image)
            self.usage_emitter.emit(record)
        except Exception as e:
            logger.error(f"Failed to queue usage record: {e}")
        return {}

    # ==================== Routing Functions ====================

    def _route_after_generation(self, state: AnalysisState) -> str:
        if state.get("failure") is not None:
            return "end"
        return "decode_sections"

    # ==================== Public Interface ====================

    def run(
        self,
        claim: Union[Claim, str],
        should_stop: Optional[Callable[[], bool]] = None
    ) -> AnalysisResult:
        """Run the analysis pipeline synchronously.

        Args:
            claim: Claim (or plain claim text) to analyze
            should_stop: Optional cancellation check, polled between models

        Returns:
            The assembled AnalysisResult

        Raises:
            AllModelsFailedError: If every backend model failed
            GenerationCancelledError: If the request was superseded
        """
        if isinstance(claim, str):
            claim = Claim(text=claim)

        logger.info(f"Starting analysis for claim: {claim.text[:100]}...")

        final_state = self.compiled_graph.invoke(create_initial_state(claim, should_stop))
        return self._finish(final_state)

    async def arun(
        self,
        claim: Union[Claim, str],
        should_stop: Optional[Callable[[], bool]] = None
    ) -> AnalysisResult:
        """Run the analysis pipeline asynchronously.

        Backend calls go through the async client.
        """
        if isinstance(claim, str):
            claim = Claim(text=claim)

        logger.info(f"Starting async analysis for claim: {claim.text[:100]}...")

        final_state = await self.compiled_async_graph.ainvoke(create_initial_state(claim, should_stop))
        return self._finish(final_state)

    def _finish(self, final_state: dict) -> AnalysisResult:
        failure = final_state.get("failure")
        if failure is not None:
            raise failure
        return final_state["result"]

    def debate(self, topic: str) -> List[DebateTurn]:
        """Generate a Pro/Con transcript; empty on failure."""
        return self.debate_agent.debate(topic)

    async def adebate(self, topic: str) -> List[DebateTurn]:
        return await self.debate_agent.adebate(topic)


# ==================== Module-level convenience functions ====================

def create_graph(
    llm_service: Optional[LLMService] = None,
    **kwargs
) -> TruthStackGraph:
    """Create a TruthStack graph instance.

    Args:
        llm_service: Optional LLM service instance
        **kwargs: Additional arguments for TruthStackGraph

    Returns:
        Configured TruthStackGraph instance
    """
    return TruthStackGraph(llm_service=llm_service, **kwargs)


def run_analysis(claim: Union[Claim, str], **kwargs) -> AnalysisResult:
    """Run an analysis on a claim.

    Args:
        claim: Claim or claim text
        **kwargs: Arguments for TruthStackGraph

    Returns:
        The assembled AnalysisResult
    """
    graph = create_graph(**kwargs)
    return graph.run(claim)


async def run_analysis_async(claim: Union[Claim, str], **kwargs) -> AnalysisResult:
    """Run an analysis asynchronously."""
    graph = create_graph(**kwargs)
    return await graph.arun(claim)
