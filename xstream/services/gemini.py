"""Gemini REST client used for image, text and video generation."""

from __future__ import annotations

import json
import logging
from io import BytesIO
from typing import Any, Dict, Iterator, List, Optional

import requests
from PIL import Image

from ..config import DEFAULT_API_URL, SuiteConfig
from ..errors import BackendError, ConfigurationError
from ..types import DownloadResult, ImageFile
from ..utils.files import b64encode, sha256_hex
from .base import Part

logger = logging.getLogger(__name__)

MOCK_VIDEO_SCHEME = "mock://"
MOCK_IMAGE_SIZE = (64, 64)


class GeminiClient:
    """Handles communication with the Gemini ``generateContent`` family of endpoints.

    When ``use_mock`` is True the client answers locally with deterministic
    placeholder images, text and videos so workflows stay exercisable without
    a credential or network access.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = DEFAULT_API_URL,
        use_mock: bool = True,
        timeout: int = 120,
        mock_polls_until_done: int = 2,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url.rstrip("/")
        self._use_mock = use_mock
        self._timeout = timeout
        self._mock_polls_until_done = mock_polls_until_done
        self._mock_operations: Dict[str, int] = {}
        self._session: Optional[requests.Session] = None

    @classmethod
    def from_config(cls, config: SuiteConfig, *, video: bool = False) -> "GeminiClient":
        """Build a client, failing fast when no credential is configured."""
        api_key = config.effective_video_api_key if video else config.api_key
        if not config.enable_mock_generation and not api_key:
            raise ConfigurationError("API_KEY environment variable is not configured.")
        return cls(
            api_key=api_key,
            api_url=config.api_url,
            use_mock=config.enable_mock_generation,
            timeout=config.request_timeout,
        )

    def generate_content(
        self,
        model: str,
        parts: List[Part],
        *,
        config: Optional[Dict[str, Any]] = None,
        system_instruction: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return the raw ``generateContent`` response body."""
        if self._use_mock:
            return self._mock_content(parts, config)

        body = self._build_body(parts, config, system_instruction)
        response = self._post(self._model_endpoint(model, "generateContent"), body)
        return response.json()

    def stream_content(
        self,
        model: str,
        parts: List[Part],
        *,
        system_instruction: Optional[str] = None,
    ) -> Iterator[str]:
        """Yield text deltas from ``streamGenerateContent`` in arrival order."""
        if self._use_mock:
            yield from self._mock_stream(parts, system_instruction)
            return

        body = self._build_body(parts, None, system_instruction)
        response = self._post(
            self._model_endpoint(model, "streamGenerateContent"),
            body,
            params={"alt": "sse"},
            stream=True,
        )
        with response:
            for line in response.iter_lines(decode_unicode=True):
                if not line or not line.startswith("data:"):
                    continue
                try:
                    payload = json.loads(line[len("data:"):].strip())
                except json.JSONDecodeError as exc:
                    raise BackendError(f"Malformed stream chunk from Gemini: {line[:200]}") from exc
                _raise_for_embedded_error(payload)
                chunk = extract_text(payload)
                if chunk:
                    yield chunk

    def submit_video(
        self,
        model: str,
        prompt: str,
        image: ImageFile,
        parameters: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Start a long-running video job and return its operation handle."""
        if self._use_mock:
            name = f"operations/mock-{sha256_hex((prompt + image.data).encode('utf-8'))[:16]}"
            self._mock_operations[name] = 0
            return {"name": name, "done": False}

        body = {
            "instances": [
                {
                    "prompt": prompt,
                    "image": {"bytesBase64Encoded": image.data, "mimeType": image.mime_type},
                }
            ],
            "parameters": parameters,
        }
        response = self._post(self._model_endpoint(model, "predictLongRunning"), body)
        return response.json()

    def get_operation(self, name: str) -> Dict[str, Any]:
        """Re-query a long-running operation."""
        if self._use_mock:
            return self._mock_operation(name)

        url = f"{self._api_url}/{name.lstrip('/')}"
        try:
            response = self._get_session().get(url, headers=self._auth_headers(), timeout=self._timeout)
        except requests.RequestException as exc:
            raise BackendError(f"Gemini operation query failed: {exc}") from exc
        _ensure_success(response)
        return response.json()

    def download(self, uri: str) -> DownloadResult:
        """Fetch ``uri`` with the credential attached; the status is left to the caller."""
        if uri.startswith(MOCK_VIDEO_SCHEME):
            content = f"MOCK-VIDEO {uri}".encode("utf-8")
            return DownloadResult(status_code=200, reason="OK", content=content, headers={"Content-Type": "video/mp4"})

        try:
            response = self._get_session().get(
                uri,
                params={"key": self._api_key},
                timeout=self._timeout,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise BackendError(f"Failed to download video: {exc}") from exc
        return DownloadResult(
            status_code=response.status_code,
            reason=response.reason or "",
            content=response.content,
            headers=dict(response.headers),
        )

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _auth_headers(self) -> Dict[str, str]:
        return {"x-goog-api-key": self._api_key or "", "Content-Type": "application/json"}

    def _model_endpoint(self, model: str, method: str) -> str:
        return f"{self._api_url}/models/{model}:{method}"

    def _post(
        self,
        url: str,
        body: Dict[str, Any],
        *,
        params: Optional[Dict[str, str]] = None,
        stream: bool = False,
    ) -> requests.Response:
        try:
            response = self._get_session().post(
                url,
                json=body,
                params=params,
                headers=self._auth_headers(),
                timeout=self._timeout,
                stream=stream,
            )
        except requests.RequestException as exc:
            raise BackendError(f"Gemini request failed: {exc}") from exc
        _ensure_success(response)
        return response

    @staticmethod
    def _build_body(
        parts: List[Part],
        config: Optional[Dict[str, Any]],
        system_instruction: Optional[str],
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if config:
            body["generationConfig"] = config
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return body

    def _mock_content(self, parts: List[Part], config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        seed_text = _joined_text(parts)
        modalities = (config or {}).get("responseModalities") or []
        if "IMAGE" in modalities:
            image = _mock_image(seed_text + str(len(parts)))
            return {"candidates": [{"content": {"parts": [image.to_part()]}}]}
        topic = seed_text.splitlines()[0] if seed_text else "an untitled idea"
        text = f"A richly detailed, cinematic rendering of {topic[:120]}"
        return {"candidates": [{"content": {"parts": [{"text": text}]}}]}

    @staticmethod
    def _mock_stream(parts: List[Part], system_instruction: Optional[str]) -> Iterator[str]:
        heading = "Verse 1" if system_instruction else "Here is a little more about that"
        words = f"{heading}: {_joined_text(parts)[:160]}".split(" ")
        for index in range(0, len(words), 8):
            yield " ".join(words[index : index + 8]) + " "

    def _mock_operation(self, name: str) -> Dict[str, Any]:
        polls = self._mock_operations.get(name, 0) + 1
        self._mock_operations[name] = polls
        if polls < self._mock_polls_until_done:
            return {"name": name, "done": False}
        uri = f"{MOCK_VIDEO_SCHEME}videos/{name.rsplit('/', 1)[-1]}.mp4"
        return {
            "name": name,
            "done": True,
            "response": {"generateVideoResponse": {"generatedSamples": [{"video": {"uri": uri}}]}},
        }


class ConfiguredKeySelector:
    """Credential selector for hosts without an interactive key picker.

    A key counts as selected when one is configured for video jobs, or when
    mock generation is on.
    """

    def __init__(self, config: SuiteConfig) -> None:
        self._config = config

    def has_selected_key(self) -> bool:
        return self._config.enable_mock_generation or bool(self._config.effective_video_api_key)

    def open_select_key(self) -> None:
        logger.info("Set XSTREAM_VIDEO_API_KEY (or API_KEY) to choose the video credential.")


def extract_inline_image(response: Dict[str, Any]) -> Optional[ImageFile]:
    """Return the first inline image part of a ``generateContent`` response."""
    for part in _candidate_parts(response):
        inline = part.get("inlineData") or part.get("inline_data")
        if isinstance(inline, dict) and inline.get("data"):
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            return ImageFile(data=inline["data"], mime_type=mime_type)
    return None


def extract_text(response: Dict[str, Any]) -> str:
    """Concatenate every text part of a response or stream chunk."""
    return "".join(
        part["text"] for part in _candidate_parts(response) if isinstance(part.get("text"), str)
    )


def extract_video_uri(operation: Dict[str, Any]) -> Optional[str]:
    """Locate the download link of a finished video operation."""
    response = operation.get("response") or {}
    samples = (response.get("generateVideoResponse") or {}).get("generatedSamples")
    if not samples:
        samples = response.get("generatedVideos")
    if isinstance(samples, list) and samples:
        video = samples[0].get("video") if isinstance(samples[0], dict) else None
        if isinstance(video, dict) and video.get("uri"):
            return str(video["uri"])
    return None


def operation_error(operation: Dict[str, Any]) -> Optional[str]:
    error = operation.get("error")
    if isinstance(error, dict):
        return str(error.get("message") or error.get("code") or "Video generation failed.")
    return None


def _candidate_parts(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    candidates = response.get("candidates") if isinstance(response, dict) else None
    if not isinstance(candidates, list) or not candidates:
        return []
    content = candidates[0].get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    return [part for part in parts or [] if isinstance(part, dict)]


def _ensure_success(response: requests.Response) -> None:
    if response.status_code < 400:
        return
    message = response.text[:500]
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        message = payload["error"].get("message") or message
    raise BackendError(f"Gemini API error {response.status_code}: {message}")


def _raise_for_embedded_error(payload: Dict[str, Any]) -> None:
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        raise BackendError(str(error.get("message") or "Gemini stream failed."))


def _joined_text(parts: List[Part]) -> str:
    return "\n".join(part["text"] for part in parts if isinstance(part.get("text"), str)).strip()


def _mock_image(seed: str) -> ImageFile:
    digest = sha256_hex(seed.encode("utf-8"))
    color = tuple(int(digest[index : index + 2], 16) for index in (0, 2, 4))
    output = BytesIO()
    Image.new("RGB", MOCK_IMAGE_SIZE, color).save(output, format="PNG")
    return ImageFile(data=b64encode(output.getvalue()), mime_type="image/png")
