"""llama.cpp inference engine client."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from tool_agent.exceptions import GenerationError, ModelLoadError
from tool_agent.utils.logging import get_logger

logger = get_logger(__name__)

# GGUF metadata keys naming additional end-of-generation tokens.
EOG_METADATA_KEYS = (
    "tokenizer.ggml.eos_token_id",
    "tokenizer.ggml.eot_token_id",
    "tokenizer.ggml.eom_token_id",
)
CHAT_TEMPLATE_METADATA_KEY = "tokenizer.chat_template"


@dataclass
class LlamaConfig:
    """Configuration for loading a GGUF model."""

    model_path: str
    context_size: int = 2048
    batch_size: int = 512
    n_gpu_layers: int = 99
    verbose: bool = False


def _import_llama() -> Any:
    """Lazily import the llama-cpp-python backend.

    Raises:
        ModelLoadError: If the package is not installed
    """
    try:
        from llama_cpp import Llama
    except ImportError as e:
        raise ModelLoadError(
            "llama-cpp-python is required to load models. Install with: pip install 'llama-tool-agent[llama]'"
        ) from e
    return Llama


class LlamaEngine:
    """Greedy, step-wise inference over a ``llama_cpp.Llama`` model."""

    def __init__(self, llm: Any):
        """Wrap an already loaded model.

        Args:
            llm: A ``llama_cpp.Llama`` instance
        """
        self.llm = llm
        self._eog_tokens = self._collect_eog_tokens()

    @classmethod
    def load(cls, config: LlamaConfig) -> "LlamaEngine":
        """Load a model from disk.

        Raises:
            ModelLoadError: If the backend is missing or the model cannot be loaded
        """
        Llama = _import_llama()
        logger.info(f"Loading model {config.model_path} (n_ctx={config.context_size}, ngl={config.n_gpu_layers})")
        try:
            llm = Llama(
                model_path=config.model_path,
                n_ctx=config.context_size,
                n_batch=config.batch_size,
                n_gpu_layers=config.n_gpu_layers,
                verbose=config.verbose,
            )
        except (ValueError, OSError, RuntimeError) as e:
            raise ModelLoadError(f"Unable to load model {config.model_path}: {e}") from e
        return cls(llm)

    def _collect_eog_tokens(self) -> frozenset[int]:
        tokens = {self.llm.token_eos()}
        metadata = getattr(self.llm, "metadata", None) or {}
        for key in EOG_METADATA_KEYS:
            value = metadata.get(key)
            if value is not None and str(value).lstrip("-").isdigit():
                tokens.add(int(value))
        return frozenset(t for t in tokens if t >= 0)

    @property
    def context_size(self) -> int:
        return self.llm.n_ctx()

    @property
    def chat_template(self) -> str | None:
        """Chat template embedded in the model metadata, if any."""
        metadata = getattr(self.llm, "metadata", None) or {}
        return metadata.get(CHAT_TEMPLATE_METADATA_KEY)

    def _token_text(self, token: int) -> str:
        if token < 0:
            return ""
        return self.llm.detokenize([token], special=True).decode("utf-8", errors="ignore")

    @property
    def bos_token(self) -> str:
        return self._token_text(self.llm.token_bos())

    @property
    def eos_token(self) -> str:
        return self._token_text(self.llm.token_eos())

    def tokenize(self, text: str, add_bos: bool = True) -> list[int]:
        try:
            return self.llm.tokenize(text.encode("utf-8"), add_bos=add_bos, special=True)
        except (RuntimeError, ValueError) as e:
            raise GenerationError(f"Failed to tokenize the prompt: {e}") from e

    def reset(self) -> None:
        try:
            self.llm.reset()
        except (RuntimeError, ValueError) as e:
            raise GenerationError(f"Failed to reset the model context: {e}") from e

    def decode(self, tokens: Sequence[int]) -> None:
        try:
            self.llm.eval(list(tokens))
        except (RuntimeError, ValueError) as e:
            raise GenerationError(f"Failed to evaluate batch of {len(tokens)} tokens: {e}") from e

    def sample(self) -> int:
        # temp=0 selects the greedy sampler; penalties off keeps it a pure argmax.
        try:
            return int(
                self.llm.sample(
                    temp=0.0,
                    repeat_penalty=1.0,
                    frequency_penalty=0.0,
                    presence_penalty=0.0,
                )
            )
        except (RuntimeError, ValueError) as e:
            raise GenerationError(f"Failed to sample the next token: {e}") from e

    def is_end_of_generation(self, token: int) -> bool:
        return token in self._eog_tokens

    def token_to_bytes(self, token: int) -> bytes:
        try:
            return self.llm.detokenize([token], special=True)
        except (RuntimeError, ValueError, UnicodeError) as e:
            raise GenerationError(f"Failed to convert token {token} to text: {e}") from e
