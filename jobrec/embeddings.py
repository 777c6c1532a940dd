"""
Embedding generation for JobRec.

EmbeddingGateway normalizes whatever an embedding function returns into plain
float vectors; OllamaEmbeddingClient is the embedding function used in
production.
"""

import time
from typing import Any, Callable, List, Optional, Sequence, Union

import ollama
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from .config import get_config_manager
from .errors import CollaboratorUnavailable

console = Console()

Vector = List[float]
EmbedFunction = Callable[[Union[str, List[str]]], Any]


def _is_sequence(value: Any) -> bool:
    return hasattr(value, "__len__") and not isinstance(value, (str, bytes))


def _to_vector(raw: Any) -> Vector:
    return [float(x) for x in raw]


class EmbeddingGateway:
    """Wraps an embedding function and normalizes single and batch responses."""

    def __init__(self, embed_fn: EmbedFunction):
        self.embed_fn = embed_fn

    def embed(self, texts: Union[str, Sequence[str]]) -> Union[Vector, List[Vector]]:
        """
        Embed one text or a batch of texts.

        Args:
            texts: A single string or a sequence of strings

        Returns:
            One vector for a single string, otherwise one vector per input,
            index aligned with the input
        """
        if isinstance(texts, str):
            response = self.embed_fn(texts)
            # Some providers wrap a single vector in a batch of one
            if len(response) > 0 and _is_sequence(response[0]):
                response = response[0]
            return _to_vector(response)

        batch = list(texts)
        if not batch:
            return []

        response = self.embed_fn(batch)
        if len(response) > 0 and not _is_sequence(response[0]):
            response = [response]

        if len(response) != len(batch):
            raise ValueError(
                f"Embedding function returned {len(response)} vectors for {len(batch)} texts"
            )

        return [_to_vector(vector) for vector in response]


class OllamaEmbeddingClient:
    """Embedding function backed by an Ollama server."""

    def __init__(self,
                 host: Optional[str] = None,
                 model: Optional[str] = None,
                 timeout: Optional[int] = None,
                 max_retries: Optional[int] = None):
        config = get_config_manager()

        # Use config values if not explicitly provided
        if host is None:
            host = f"http://{config.get('ollama', 'host')}:{config.get('ollama', 'port')}"
        if model is None:
            model = config.get('ollama', 'model')
        if timeout is None:
            timeout = config.get('ollama', 'timeout')
        if max_retries is None:
            max_retries = config.get('ollama', 'max_retries')
        self.host = host
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.client = ollama.Client(host=host, timeout=timeout)
        self._model_ready = None

    def __call__(self, texts: Union[str, List[str]]) -> List[List[float]]:
        return self.embed(texts)

    def embed(self, texts: Union[str, List[str]]) -> List[List[float]]:
        """Embed one or many texts, retrying transient failures."""
        inputs = [texts] if isinstance(texts, str) else list(texts)
        last_error = None

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.client.embed(model=self.model, input=inputs)
                return response['embeddings']
            except Exception as e:
                last_error = e
                if attempt < self.max_retries:
                    console.print(
                        f"[yellow]Embedding attempt {attempt}/{self.max_retries} failed: {e}. Retrying...[/yellow]"
                    )
                    time.sleep(attempt)

        raise CollaboratorUnavailable(
            f"Ollama embedding failed after {self.max_retries} attempts: {last_error}"
        ) from last_error

    def test_connection(self) -> bool:
        """Test if Ollama server is accessible."""
        try:
            self.client.list()
            return True
        except Exception as e:
            console.print(f"[red]Ollama connection failed: {e}[/red]")
            return False

    def _available_models(self) -> List[str]:
        models = self.client.list()
        return [model.get('model') or model.get('name', '') for model in models.get('models', [])]

    def ensure_model_ready(self) -> bool:
        """Ensure the embedding model is available, pulling it if needed."""
        if self._model_ready is not None:
            return self._model_ready

        try:
            model_names = self._available_models()

            if self.model in model_names or f"{self.model}:latest" in model_names:
                self._model_ready = True
                return True

            console.print(f"[yellow]Pulling model {self.model}... This may take a while.[/yellow]")

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
            ) as progress:
                task = progress.add_task(f"Downloading {self.model}", total=None)

                try:
                    self.client.pull(self.model)
                    progress.update(task, description="Model downloaded successfully")
                    self._model_ready = True
                    console.print(f"[green]✓ Model {self.model} is now ready[/green]")
                    return True
                except Exception as e:
                    progress.update(task, description=f"Failed to download model: {e}")
                    self._model_ready = False
                    return False

        except Exception as e:
            console.print(f"[red]Error checking model availability: {e}[/red]")
            self._model_ready = False
            return False

    def get_status(self) -> dict:
        """Get connection and model status of the Ollama client."""
        status = {
            "host": self.host,
            "model": self.model,
            "connection": False,
            "model_ready": False,
            "error": None
        }

        try:
            self.client.list()
            status["connection"] = True
        except Exception as e:
            status["error"] = f"Connection failed: {e}"
            return status

        status["model_ready"] = self.ensure_model_ready()
        if not status["model_ready"]:
            status["error"] = f"Model {self.model} not available"

        return status


def get_embedding_client(host: Optional[str] = None,
                         model: Optional[str] = None) -> OllamaEmbeddingClient:
    """Get an embedding client instance."""
    return OllamaEmbeddingClient(host=host, model=model)


def test_embedding_client(text: str = "Senior backend engineer, remote, Python and Go.") -> bool:
    """Test the embedding client functionality."""
    console.print("[cyan]Testing Ollama embedding client...[/cyan]")

    client = get_embedding_client()

    if not client.test_connection():
        console.print("[red]✗ Connection test failed[/red]")
        return False

    console.print("[green]✓ Connection successful[/green]")

    if not client.ensure_model_ready():
        console.print("[red]✗ Model not ready[/red]")
        return False

    gateway = EmbeddingGateway(client)
    try:
        embedding = gateway.embed(text)
    except CollaboratorUnavailable as e:
        console.print(f"[red]✗ Embedding generation failed: {e}[/red]")
        return False

    console.print(f"[green]✓ Generated embedding with {len(embedding)} dimensions[/green]")
    console.print("[green]✓ Embedding client test passed![/green]")

    return True
