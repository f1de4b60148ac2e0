"""Ollama embedder for memory texts and queries.

Implements the embedder collaborator over the Ollama ``/api/embed``
endpoint using an async httpx client. Connection and transport errors are
retried with exponential backoff; timeouts and HTTP errors fail fast.
Models of the mxbai family get a retrieval prefix on queries only.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Optional

import httpx

if TYPE_CHECKING:
    from mnemograph.config import MnemographSettings

logger = logging.getLogger(__name__)

QUERY_PREFIX = "Represent this sentence for searching relevant passages: "


class EmbeddingError(Exception):
    """Custom exception for embedding errors."""

    pass


class OllamaEmbedder:
    """Async embedder backed by an Ollama server.

    Args:
        host: Ollama server URL (default: "http://localhost:11434")
        model: Embedding model name (default: "mxbai-embed-large")
        timeout: Request timeout in seconds (default: 30)
        max_retries: Attempts for connection/transport errors (default: 3)

    Example:
        >>> async with OllamaEmbedder() as embedder:
        ...     vector = await embedder.embed("Where does Anna work?", is_query=True)
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "mxbai-embed-large",
        timeout: float = 30.0,
        max_retries: int = 3,
    ):
        self.host = host.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: "MnemographSettings") -> "OllamaEmbedder":
        return cls(
            host=settings.ollama_host,
            model=settings.ollama_model,
            timeout=settings.embed_timeout,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "OllamaEmbedder":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def prepare(self, text: str, is_query: bool) -> str:
        """Apply the query prefix where the model expects one."""
        if is_query and "mxbai" in self.model.lower():
            return f"{QUERY_PREFIX}{text}"
        return text

    async def _post(self, payload: dict[str, Any], base_delay: float = 1.0) -> dict[str, Any]:
        client = self._get_client()

        for attempt in range(self.max_retries):
            try:
                response = await client.post(f"{self.host}/api/embed", json=payload)
                response.raise_for_status()
                data: dict[str, Any] = response.json()
                return data

            except httpx.TimeoutException as e:
                raise EmbeddingError(f"Embedding request timed out after {self.timeout}s") from e

            except httpx.HTTPStatusError as e:
                raise EmbeddingError(
                    f"Ollama API error: {e.response.status_code} - {e.response.text}"
                ) from e

            except httpx.RequestError as e:
                if attempt == self.max_retries - 1:
                    raise EmbeddingError(
                        f"Ollama request failed after {self.max_retries} attempts: {e}"
                    ) from e
                delay = base_delay * (2**attempt)
                logger.warning(
                    f"Embedding request error (attempt {attempt + 1}/{self.max_retries}), "
                    f"retrying in {delay}s: {e}"
                )
                await asyncio.sleep(delay)

        raise EmbeddingError("Embedding request was not attempted")

    async def embed(self, text: str, is_query: bool = False) -> list[float]:
        """Embed one text.

        Args:
            text: Text to embed
            is_query: True for search queries, False for stored memories

        Returns:
            Embedding vector

        Raises:
            ValueError: If text is empty
            EmbeddingError: If the request fails or returns no embedding
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        data = await self._post({"model": self.model, "input": self.prepare(text, is_query)})
        embeddings = data.get("embeddings")
        if not embeddings:
            raise EmbeddingError("No embedding returned from Ollama API")

        vector: list[float] = embeddings[0]
        return vector
