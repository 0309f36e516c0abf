"""Tests for the generation driver."""

import pytest
from conftest import ScriptedEngine

from tool_agent.exceptions import GenerationError
from tool_agent.services.generation import GenerationDriver


class CountingEngine:
    """Deterministic engine whose next token depends on everything decoded so far."""

    def __init__(self, context_size: int = 512, eog_after: int | None = None):
        self._context_size = context_size
        self.eog_after = eog_after
        self.history: list[int] = []
        self.batches: list[list[int]] = []

    @property
    def context_size(self) -> int:
        return self._context_size

    def tokenize(self, text: str, add_bos: bool = True) -> list[int]:
        return [ord(c) % 90 + 1 for c in text]

    def reset(self) -> None:
        self.history = []
        self.batches = []

    def decode(self, tokens) -> None:
        self.batches.append(list(tokens))
        self.history.extend(tokens)

    def sample(self) -> int:
        if self.eog_after is not None and len(self.batches) > self.eog_after:
            return 0
        return sum(self.history) % 26 + 65

    def is_end_of_generation(self, token: int) -> bool:
        return token == 0

    def token_to_bytes(self, token: int) -> bytes:
        return bytes([token])


class TestGreedyGeneration:
    """Tests for the decode loop."""

    def test_deterministic(self):
        """Test that identical state and prompt give identical output."""
        driver = GenerationDriver(CountingEngine(), max_new_tokens=32)
        prompt = driver.tokenize("list files")

        first = driver.generate(prompt)
        second = driver.generate(prompt)

        assert first.tokens == second.tokens
        assert first.text == second.text
        assert len(first.tokens) == 32

    def test_prompt_decoded_once_then_one_token_per_step(self):
        """Test that the prompt is one batch and every later batch is a single token."""
        engine = CountingEngine()
        driver = GenerationDriver(engine, max_new_tokens=5)

        result = driver.generate([10, 20, 30])

        assert engine.batches[0] == [10, 20, 30]
        assert all(len(batch) == 1 for batch in engine.batches[1:])
        assert [b[0] for b in engine.batches[1:]] == list(result.tokens[:-1])

    def test_budget_is_prompt_plus_max_new_tokens(self):
        """Test that generation stops at the new-token budget."""
        result = GenerationDriver(CountingEngine(), max_new_tokens=5).generate([1, 2, 3])

        assert len(result.tokens) == 5
        assert result.stop_reason == "max_tokens"
        assert result.prompt_tokens == 3

    def test_budget_capped_by_context(self):
        """Test that the context window caps the budget."""
        result = GenerationDriver(CountingEngine(context_size=6), max_new_tokens=100).generate([1, 2, 3])

        assert len(result.tokens) == 3

    def test_stops_at_end_of_generation(self):
        """Test that the end-of-generation token ends the cycle and is not emitted."""
        result = GenerationDriver(CountingEngine(eog_after=3), max_new_tokens=100).generate([1, 2])

        assert len(result.tokens) == 3
        assert 0 not in result.tokens
        assert result.stop_reason == "end_of_generation"

    def test_streams_text(self):
        """Test that every piece of text is passed to the callback."""
        pieces = []
        driver = GenerationDriver(ScriptedEngine(["Hello, world"]), max_new_tokens=64)

        result = driver.generate([1], on_text=pieces.append)

        assert result.text == "Hello, world"
        assert "".join(pieces) == "Hello, world"

    def test_multibyte_text_assembled(self):
        """Test that characters split over several tokens decode intact."""
        pieces = []
        driver = GenerationDriver(ScriptedEngine(["naïve ☃"]), max_new_tokens=64)

        result = driver.generate([1], on_text=pieces.append)

        assert result.text == "naïve ☃"
        assert "".join(pieces) == "naïve ☃"
        assert all("�" not in piece for piece in pieces)


class TestGenerationErrors:
    """Tests for failures during a generation cycle."""

    def test_decode_failure(self):
        """Test that a failed decode is raised, not retried."""
        engine = ScriptedEngine(["never"], fail_on_decode=True)

        with pytest.raises(GenerationError, match="llama_decode failed"):
            GenerationDriver(engine).generate([1, 2])

    def test_empty_prompt(self):
        """Test that an empty prompt cannot be generated from."""
        with pytest.raises(GenerationError, match="empty prompt"):
            GenerationDriver(CountingEngine()).generate([])

    def test_prompt_exceeds_context(self):
        """Test that a prompt filling the context window is rejected."""
        with pytest.raises(GenerationError, match="does not fit"):
            GenerationDriver(CountingEngine(context_size=4)).generate([1, 2, 3, 4])

    def test_tokenize_nothing(self):
        """Test that a prompt producing no tokens is rejected."""
        with pytest.raises(GenerationError, match="no tokens"):
            GenerationDriver(ScriptedEngine()).tokenize("", add_bos=False)
