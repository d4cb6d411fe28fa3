"""Embedding clients that turn projected company text into vectors."""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass
from operator import itemgetter
from typing import Any, Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request

from crm_ledger.config import get_settings
from crm_ledger.models.embedding_type import EMBEDDING_DIMENSIONS

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class EmbeddingError(RuntimeError):
    """Raised when an embedding provider fails or returns an unusable payload."""


class EmbeddingClient(Protocol):
    """Anything that maps a batch of texts to one vector per text."""

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in input order."""


@dataclass(slots=True)
class OpenAIEmbeddingsClient:
    """OpenAI embeddings endpoint over stdlib HTTP."""

    api_key: str
    model: str
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 60
    dimensions: int = EMBEDDING_DIMENSIONS

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if any(not text.strip() for text in texts):
            raise EmbeddingError("Cannot embed blank text")

        decoded = self._post("embeddings", {"model": self.model, "input": texts, "dimensions": self.dimensions})
        try:
            rows = sorted(decoded["data"], key=itemgetter("index"))
            vectors = [[float(value) for value in row["embedding"]] for row in rows]
        except (KeyError, TypeError, ValueError) as exc:
            raise EmbeddingError("OpenAI embeddings response was missing vectors") from exc
        if len(vectors) != len(texts):
            raise EmbeddingError(f"OpenAI returned {len(vectors)} vectors for {len(texts)} texts")
        return vectors

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        req = urllib_request.Request(
            url=f"{self.base_url.rstrip('/')}/{path}",
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise EmbeddingError(f"OpenAI embeddings HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise EmbeddingError(f"OpenAI embeddings request failed: {exc.reason}") from exc
        except OSError as exc:
            # Socket timeouts during read() are raised as bare TimeoutError.
            raise EmbeddingError(f"OpenAI embeddings connection failed: {exc}") from exc
        except ValueError as exc:
            raise EmbeddingError("OpenAI embeddings response was not JSON") from exc


@dataclass(slots=True)
class HashEmbeddingsClient:
    """Deterministic bag-of-tokens vectors for offline runs and tests.

    Identical token multisets always map to identical vectors, so a record
    searched by its own text scores 1.0.
    """

    dimensions: int = EMBEDDING_DIMENSIONS

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]

    def _embed(self, text: str) -> list[float]:
        vector = [0.0] * max(1, self.dimensions)
        for token in _TOKEN_RE.findall((text or "").lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % len(vector)
            vector[bucket] += -1.0 if digest[4] & 1 else 1.0
        return vector


def get_default_embedding_client() -> EmbeddingClient:
    """Return the OpenAI client when an API key is configured, otherwise hashing."""

    settings = get_settings()
    if settings.openai_api_key:
        return OpenAIEmbeddingsClient(
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.openai_timeout_seconds,
        )
    return HashEmbeddingsClient()
