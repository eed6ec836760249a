"""
Dual-encoder similarity model.

Two branches with the same shape but separate weights turn a padded
question into a vector:

  * ``embedding`` — embedding lookup, flattened to max_len × embedding_size
  * ``lstm``      — embedding lookup fed left-to-right through an LSTM,
                    final hidden state of width lstm_size

The two vectors are combined by a dot product and a single logistic unit
turns that scalar into the probability that the questions are duplicates.
"""

from typing import Annotated, Literal, Union

import numpy as np
import torch
import torch.nn as nn
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from quora_pairs.config import PipelineConfig
from quora_pairs.tokenizer import Vocabulary


class VocabularyMismatchError(ValueError):
    """Scoring vocabulary differs from the one the model was trained with."""


# ─── Specs ──────────────────────────────────────────────────────
PaddingPolicy = Literal["pre", "post"]


class EmbeddingOnlySpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["embedding"] = "embedding"
    vocab_size: int = Field(gt=0)
    max_len: int = Field(gt=0)
    embedding_size: int = Field(gt=0)
    padding: PaddingPolicy = "pre"
    truncating: PaddingPolicy = "pre"
    vocab_signature: str | None = None


class SequenceEncodedSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: Literal["lstm"] = "lstm"
    vocab_size: int = Field(gt=0)
    max_len: int = Field(gt=0)
    embedding_size: int = Field(gt=0)
    lstm_size: int = Field(gt=0)
    padding: PaddingPolicy = "pre"
    truncating: PaddingPolicy = "pre"
    vocab_signature: str | None = None


ModelSpec = Annotated[
    Union[EmbeddingOnlySpec, SequenceEncodedSpec],
    Field(discriminator="variant"),
]
_spec_adapter = TypeAdapter(ModelSpec)

VARIANTS = ("embedding", "lstm")


def make_spec(variant: str, config: PipelineConfig,
              vocabulary: Vocabulary | None = None) -> ModelSpec:
    """Spec for `variant` from the configured hyperparameters.

    The padding/truncating policy is recorded so scoring pads exactly as
    training did.  With a vocabulary, its size and signature are recorded so
    that scoring can refuse any other vocabulary.
    """
    common = dict(
        vocab_size=vocabulary.vocab_size if vocabulary is not None else config.vocab_size,
        max_len=config.max_len,
        embedding_size=config.embedding_size,
        padding=config.padding,
        truncating=config.truncating,
        vocab_signature=vocabulary.signature if vocabulary is not None else None,
    )
    if variant == "embedding":
        return EmbeddingOnlySpec(**common)
    if variant == "lstm":
        return SequenceEncodedSpec(lstm_size=config.lstm_size, **common)
    raise ValueError(f"Unknown model variant: {variant!r} (expected one of {VARIANTS})")


def parse_spec(data: dict) -> ModelSpec:
    return _spec_adapter.validate_python(data)


# ─── Network ────────────────────────────────────────────────────
class QuestionBranch(nn.Module):
    """Maps (batch, max_len) token ids to one vector per question."""

    def __init__(self, spec: ModelSpec):
        super().__init__()
        # ids 0..vocab_size plus the pad sentinel vocab_size+1
        self.embedding = nn.Embedding(spec.vocab_size + 2, spec.embedding_size)
        self.encoder = (
            nn.LSTM(spec.embedding_size, spec.lstm_size, batch_first=True)
            if spec.variant == "lstm" else None
        )

    def forward(self, ids: torch.Tensor) -> torch.Tensor:
        x = self.embedding(ids)
        if self.encoder is None:
            return x.flatten(start_dim=1)
        _, (h_n, _) = self.encoder(x)
        return h_n[-1]


class SimilarityModel(nn.Module):
    """Two `QuestionBranch`es, a dot product and a logistic unit.

    `forward` returns logits; `predict_proba` returns probabilities.  After
    `freeze()` the model only scores; training again requires `unfreeze()`.
    """

    def __init__(self, spec: ModelSpec):
        super().__init__()
        self.spec = spec
        self.branch1 = QuestionBranch(spec)
        self.branch2 = QuestionBranch(spec)
        self.head = nn.Linear(1, 1)
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "SimilarityModel":
        self.eval()
        for p in self.parameters():
            p.requires_grad_(False)
        self._frozen = True
        return self

    def unfreeze(self) -> "SimilarityModel":
        for p in self.parameters():
            p.requires_grad_(True)
        self._frozen = False
        return self.train()

    def forward(self, q1: torch.Tensor, q2: torch.Tensor) -> torch.Tensor:
        if q1.shape[-1] != self.spec.max_len or q2.shape[-1] != self.spec.max_len:
            raise ValueError(
                f"inputs must be padded to max_len={self.spec.max_len}, "
                f"got {tuple(q1.shape)} and {tuple(q2.shape)}")
        v1 = self.branch1(q1)
        v2 = self.branch2(q2)
        dot = (v1 * v2).sum(dim=1, keepdim=True)
        return self.head(dot).squeeze(-1)

    @property
    def device(self) -> torch.device:
        return next(self.parameters()).device

    def predict_proba(self, q1, q2, batch_size: int = 4096) -> np.ndarray:
        """Duplicate probabilities for padded id arrays of shape (n, max_len)."""
        was_training = self.training
        self.eval()
        q1 = torch.as_tensor(np.asarray(q1), dtype=torch.long)
        q2 = torch.as_tensor(np.asarray(q2), dtype=torch.long)
        out = []
        with torch.no_grad():
            for i in range(0, len(q1), batch_size):
                logits = self(q1[i:i + batch_size].to(self.device),
                              q2[i:i + batch_size].to(self.device))
                out.append(torch.sigmoid(logits).cpu().numpy())
        if was_training:
            self.train()
        return np.concatenate(out) if out else np.zeros(0, dtype=np.float32)

    def check_vocabulary(self, vocabulary: Vocabulary) -> None:
        if vocabulary.vocab_size != self.spec.vocab_size:
            raise VocabularyMismatchError(
                f"model expects vocab_size={self.spec.vocab_size}, "
                f"vocabulary has vocab_size={vocabulary.vocab_size}")
        if (self.spec.vocab_signature is not None
                and vocabulary.signature != self.spec.vocab_signature):
            raise VocabularyMismatchError(
                "vocabulary signature does not match the one recorded at training time")


def build_model(spec: ModelSpec, seed: int | None = None) -> SimilarityModel:
    """Fresh, trainable model for `spec`; `seed` fixes the initial weights."""
    if seed is not None:
        torch.manual_seed(seed)
    return SimilarityModel(spec)


# ─── Checkpoints ────────────────────────────────────────────────
def save_model(model: SimilarityModel, path: str) -> None:
    torch.save({
        "spec": model.spec.model_dump(),
        "state_dict": {k: v.detach().cpu() for k, v in model.state_dict().items()},
    }, path)


def load_model(path: str, device: str = "cpu") -> SimilarityModel:
    """Rebuild a saved model; it comes back frozen."""
    checkpoint = torch.load(path, map_location=device, weights_only=True)
    model = build_model(parse_spec(checkpoint["spec"]))
    model.load_state_dict(checkpoint["state_dict"])
    return model.to(device).freeze()
