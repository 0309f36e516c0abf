"""Token-by-token generation against an inference engine."""

import codecs
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Literal, Protocol

from tool_agent.exceptions import GenerationError
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

StopReason = Literal["end_of_generation", "max_tokens"]


class InferenceEngine(Protocol):
    """The operations the driver needs from an inference backend.

    Every method may raise ``GenerationError``.
    """

    @property
    def context_size(self) -> int: ...

    def tokenize(self, text: str, add_bos: bool = True) -> list[int]: ...

    def reset(self) -> None:
        """Forget all previously decoded tokens."""
        ...

    def decode(self, tokens: Sequence[int]) -> None:
        """Run one decode step over a batch of pending tokens."""
        ...

    def sample(self) -> int:
        """Pick the highest-probability next token (greedy, no randomness)."""
        ...

    def is_end_of_generation(self, token: int) -> bool: ...

    def token_to_bytes(self, token: int) -> bytes: ...


@dataclass
class GenerationState:
    """Transient state of one generation cycle."""

    prompt_tokens: list[int]
    position: int = 0
    generated: list[int] = field(default_factory=list)
    text: str = ""


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of one generation cycle."""

    text: str
    tokens: tuple[int, ...]
    prompt_tokens: int
    stop_reason: StopReason


class GenerationDriver:
    """Runs the decode loop until end-of-generation or the token budget."""

    def __init__(self, engine: InferenceEngine, max_new_tokens: int = 256):
        self.engine = engine
        self.max_new_tokens = max_new_tokens

    def tokenize(self, prompt: str, add_bos: bool = True) -> list[int]:
        """Tokenize a rendered prompt.

        Raises:
            GenerationError: If the prompt cannot be tokenized or is empty
        """
        tokens = self.engine.tokenize(prompt, add_bos=add_bos)
        if not tokens:
            raise GenerationError("Prompt produced no tokens")
        return tokens

    def generate(
        self,
        prompt_tokens: Sequence[int],
        on_text: Callable[[str], None] | None = None,
    ) -> GenerationResult:
        """Generate a reply to ``prompt_tokens``.

        The budget is the prompt length plus ``max_new_tokens``, capped at the
        engine's context size. Reaching it ends the cycle normally.

        Args:
            prompt_tokens: Tokenized prompt
            on_text: Called with each newly decoded piece of text

        Raises:
            GenerationError: If decoding or token conversion fails
        """
        state = GenerationState(prompt_tokens=list(prompt_tokens))
        n_prompt = len(state.prompt_tokens)
        context_size = self.engine.context_size
        if n_prompt == 0:
            raise GenerationError("Cannot generate from an empty prompt")
        if n_prompt >= context_size:
            raise GenerationError(f"Prompt of {n_prompt} tokens does not fit the context window of {context_size}")

        budget = min(n_prompt + self.max_new_tokens, context_size)
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        stop_reason: StopReason = "max_tokens"

        self.engine.reset()
        pending = state.prompt_tokens
        while state.position + len(pending) < budget:
            self.engine.decode(pending)
            state.position += len(pending)

            token = self.engine.sample()
            if self.engine.is_end_of_generation(token):
                stop_reason = "end_of_generation"
                break

            piece = decoder.decode(self.engine.token_to_bytes(token))
            if piece:
                state.text += piece
                if on_text:
                    on_text(piece)

            state.generated.append(token)
            pending = [token]

        tail = decoder.decode(b"", final=True)
        if tail:
            state.text += tail
            if on_text:
                on_text(tail)

        if stop_reason == "max_tokens":
            logger.warning(f"Generation stopped at token budget after {len(state.generated)} tokens")
        logger.info(f"Generated {len(state.generated)} tokens from a {n_prompt}-token prompt ({stop_reason})")

        return GenerationResult(
            text=state.text,
            tokens=tuple(state.generated),
            prompt_tokens=n_prompt,
            stop_reason=stop_reason,
        )
