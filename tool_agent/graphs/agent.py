"""The agent loop: one user turn at a time through the agent graph."""

from dataclasses import dataclass

from langgraph.graph import END, StateGraph

from tool_agent.graphs.edges import route_dispatch_output, route_generate_output, route_parse_output
from tool_agent.graphs.nodes import AgentCallbacks, AgentRuntime, dispatch_node, generate_node, parse_node
from tool_agent.graphs.state import AgentState, TurnOutcome
from tool_agent.models.config import DEFAULT_SYSTEM_PROMPT
from tool_agent.models.messages import ConversationMessage
from tool_agent.services.chat_template import ChatTemplate
from tool_agent.services.confirmation import Confirmer
from tool_agent.services.generation import GenerationDriver
from tool_agent.services.parser import ResponseParser
from tool_agent.tools.registry import ToolsRegistry
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)


def create_agent_graph():
    """Create the agent graph.

    generate -> parse -> dispatch -> generate ... until a reply carries no
    tool calls, generation fails or the tool-call round limit is hit.

    Returns:
        Compiled LangGraph workflow
    """
    workflow = StateGraph(AgentState)

    workflow.add_node("generate", generate_node)
    workflow.add_node("parse", parse_node)
    workflow.add_node("dispatch", dispatch_node)

    workflow.set_entry_point("generate")

    workflow.add_conditional_edges(
        "generate",
        route_generate_output,
        {
            "parse": "parse",
            "end": END,
        },
    )

    workflow.add_conditional_edges(
        "parse",
        route_parse_output,
        {
            "dispatch": "dispatch",
            "end": END,
        },
    )

    workflow.add_conditional_edges(
        "dispatch",
        route_dispatch_output,
        {
            "generate": "generate",
            "end": END,
        },
    )

    return workflow.compile()


@dataclass(frozen=True)
class TurnResult:
    """How a user turn ended."""

    answer: str | None
    outcome: TurnOutcome
    rounds: int
    error: str | None = None


class AgentLoop:
    """Owns a conversation and resolves user turns against it.

    Turns are strictly sequential: ``run_turn`` must not be called again
    before the previous call has returned.
    """

    def __init__(
        self,
        driver: GenerationDriver,
        template: ChatTemplate,
        registry: ToolsRegistry,
        parser: ResponseParser | None = None,
        confirmer: Confirmer | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        max_tool_rounds: int = 8,
        callbacks: AgentCallbacks | None = None,
    ):
        self.runtime = AgentRuntime(
            driver=driver,
            template=template,
            registry=registry,
            parser=parser or ResponseParser(),
            confirmer=confirmer,
            max_tool_rounds=max_tool_rounds,
            callbacks=callbacks or AgentCallbacks(),
        )
        self.system_prompt = system_prompt
        self.graph = create_agent_graph()
        self._conversation: list[ConversationMessage] = []
        self.reset()

    @property
    def conversation(self) -> list[ConversationMessage]:
        """A copy of the conversation so far."""
        return list(self._conversation)

    def reset(self) -> None:
        """Start over with only the system prompt."""
        self._conversation = [ConversationMessage.system(self.system_prompt)] if self.system_prompt else []

    async def run_turn(self, text: str) -> TurnResult:
        """Resolve one user message, including every tool-call round it leads to."""
        logger.info(f"Starting turn {sum(m.role == 'user' for m in self._conversation) + 1}")

        config = {
            "configurable": {"runtime": self.runtime},
            "recursion_limit": 3 * (self.runtime.max_tool_rounds + 1) + 3,
        }
        result = await self.graph.ainvoke(
            {"messages": [*self._conversation, ConversationMessage.user(text)]},
            config,
        )

        self._conversation = list(result["messages"])
        outcome = result.get("outcome") or "answered"
        turn = TurnResult(
            answer=result.get("final_answer") if outcome == "answered" else None,
            outcome=outcome,
            rounds=result.get("rounds", 0),
            error=result.get("error"),
        )
        logger.info(f"Turn ended ({turn.outcome}) after {turn.rounds} tool rounds")
        return turn
