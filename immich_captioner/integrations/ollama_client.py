"""
Ollama Client
=============

Wrapper around the official 'ollama' Python library.
Sends one image plus the captioning prompt to a vision model via /api/chat
and maps the library's failures onto the captioner's error taxonomy.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

import httpx
from ollama import Client, ResponseError

from immich_captioner.core import config
from immich_captioner.core.exceptions import DecodeError, RemoteStatusError, TransportError

# Known vision models
VISION_MODEL_PATTERNS = [
    'llava', 'llama3.2-vision', 'llama4', 'bakllava', 'moondream', 'minicpm-v',
    'qwen2-vl', 'qwen2.5vl', 'qwen3-vl', 'gemma3', 'granite3.2-vision', 'yi-vl'
]


def is_vision_model(model_name: str) -> bool:
    """Check if a model name indicates vision/multimodal capability."""
    if not model_name:
        return False
    return any(pattern in model_name.lower() for pattern in VISION_MODEL_PATTERNS)


@dataclass
class InferenceRequest:
    """One non-streaming chat call carrying a single image."""
    model: str
    image_b64: str
    prompt: str = config.DESCRIPTION_PROMPT
    stream: bool = False
    options: Dict[str, Any] = field(default_factory=lambda: dict(config.INFERENCE_OPTIONS))

    def to_messages(self) -> List[Dict[str, Any]]:
        return [{'role': 'user', 'content': self.prompt, 'images': [self.image_b64]}]


@dataclass
class InferenceResult:
    """Generated text and whether the server flagged the reply as complete."""
    text: str
    done: bool
    model: str = ""


class OllamaClient:
    """
    Client wrapper for the official Ollama Python library.

    Attributes:
        host (str): URL of the Ollama server (e.g., "http://localhost:11434")
    """

    def __init__(self, host: Optional[str] = None, client: Optional[Client] = None):
        """Initialize the Ollama client.

        Args:
            host: Optional host URL. If None/empty, the library default is used.
            client: Optional pre-built ollama.Client (used by tests).
        """
        self.host = host.rstrip('/') if host else host
        self.logger = logging.getLogger(__name__)

        if client is not None:
            self.client = client
        else:
            # No timeout: big vision models can legitimately take minutes.
            self.client = Client(host=self.host or None, timeout=config.INFERENCE_TIMEOUT_SECONDS)

        self.logger.debug(f"OllamaClient initialized with host: {self.host or 'default'}")

    def list_models(self) -> List[str]:
        """List model names pulled on the Ollama server.

        Raises:
            TransportError: If the server cannot be reached.
            RemoteStatusError: If the server rejects the request.
        """
        try:
            response = self.client.list()
        except ResponseError as e:
            raise RemoteStatusError(e.status_code, e.error) from e
        except (ConnectionError, httpx.HTTPError) as e:
            raise TransportError(f"ollama request failed: {e}") from e

        names = []
        for m in getattr(response, 'models', None) or []:
            name = getattr(m, 'model', None) or getattr(m, 'name', None)
            if name:
                names.append(name)
        return names

    def chat_with_image(self, model_name: str, image_b64: str) -> InferenceResult:
        """
        Send the captioning prompt with one base64 image to an Ollama model.

        The completion flag is reported, not judged; callers decide whether an
        unfinished reply is usable.

        Args:
            model_name: Ollama model tag (e.g. "minicpm-v:latest")
            image_b64: Base64-encoded JPEG

        Returns:
            InferenceResult with the generated text and the done flag.

        Raises:
            TransportError: Connection refused, reset or otherwise failed.
            RemoteStatusError: Non-2xx answer; carries status and response text.
            DecodeError: The reply was not the expected JSON structure.
        """
        request = InferenceRequest(model=model_name, image_b64=image_b64)

        self.logger.debug(
            f"[OLLAMA] Sending chat request to {model_name} "
            f"(image <base64_len_{len(image_b64)}>, options={request.options})"
        )

        try:
            response = self.client.chat(
                model=request.model,
                messages=request.to_messages(),
                stream=request.stream,
                options=request.options,
            )
        except ResponseError as e:
            raise RemoteStatusError(e.status_code, e.error) from e
        except (ConnectionError, httpx.HTTPError) as e:
            raise TransportError(f"ollama request failed: {e}") from e
        except (ValueError, TypeError) as e:
            raise DecodeError(f"invalid ollama response: {e}") from e

        message = getattr(response, 'message', None)
        content = getattr(message, 'content', None)
        if message is None or not isinstance(content, str):
            raise DecodeError("invalid ollama response: missing message content")

        done = bool(getattr(response, 'done', False))
        self.logger.debug(f"[OLLAMA] {model_name} replied with {len(content)} chars (done={done})")
        return InferenceResult(text=content, done=done, model=model_name)

    def __repr__(self) -> str:
        return f"<OllamaClient host={self.host}>"
