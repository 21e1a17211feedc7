"""AI provider client: model catalogue and dispatch over httpx.

Supported providers are OpenAI (chat completions), Anthropic (messages)
and Google (generateContent). A provider is available only when its API
key is configured. The ``mock`` provider is always available and answers
deterministically, which keeps development and tests offline.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx

from src.novohaven.core.config import Settings
from src.novohaven.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    provider: str
    max_tokens: int
    supports_vision: bool = False
    supports_image_generation: bool = False


AI_MODELS: tuple[ModelInfo, ...] = (
    ModelInfo("gpt-4-turbo", "GPT-4 Turbo", "openai", 128000, supports_vision=True),
    ModelInfo("gpt-4o", "GPT-4o", "openai", 128000, supports_vision=True),
    ModelInfo("gpt-4", "GPT-4", "openai", 8192),
    ModelInfo("gpt-3.5-turbo", "GPT-3.5 Turbo", "openai", 16385),
    ModelInfo("claude-opus-4-5", "Claude Opus 4.5", "anthropic", 200000, supports_vision=True),
    ModelInfo("gemini-2.5-pro", "Gemini 2.5 Pro", "google", 1000000, supports_vision=True),
    ModelInfo(
        "gemini-3-pro-preview", "Gemini 3 Pro Preview", "google", 1000000, supports_vision=True
    ),
    ModelInfo("gemini-2.5-flash", "Gemini 2.5 Flash", "google", 1000000, supports_vision=True),
    ModelInfo(
        "gemini-3-pro-image-preview",
        "Gemini 3 Pro Image",
        "google",
        32768,
        supports_vision=True,
        supports_image_generation=True,
    ),
    ModelInfo(
        "gemini-2.5-flash-image",
        "Gemini 2.5 Flash Image",
        "google",
        32768,
        supports_vision=True,
        supports_image_generation=True,
    ),
    ModelInfo("mock", "Mock AI (Testing)", "mock", 100000, supports_vision=True),
    ModelInfo(
        "mock-imagen", "Mock Image Generator", "mock", 100000, supports_image_generation=True
    ),
)

_MODELS_BY_ID = {m.id: m for m in AI_MODELS}

# 1x1 PNG returned by the mock image generator
_MOCK_IMAGE_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJ"
    "AAAADUlEQVR42mP8z8DwHwAFBQIAX8jx0gAAAABJRU5ErkJggg=="
)


@dataclass
class AIResponse:
    success: bool
    content: str = ""
    model: str = ""
    usage: dict[str, int] | None = None
    generated_images: list[dict[str, str]] | None = None
    error: str | None = None


@dataclass
class CallOptions:
    """Provider-neutral view of a step's model config."""

    temperature: float = 0.7
    max_tokens: int = 2000
    top_p: float = 1.0
    system_message: str | None = None
    messages: list[dict[str, str]] | None = None
    images: list[dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_config(cls, config: dict[str, Any] | None, default_max_tokens: int) -> "CallOptions":
        config = config or {}
        max_tokens = config.get("max_tokens") or config.get("maxTokens") or default_max_tokens
        return cls(
            temperature=float(config.get("temperature", 0.7)),
            max_tokens=int(max_tokens),
            top_p=float(config.get("top_p", config.get("topP", 1.0))),
            system_message=config.get("system_message"),
            messages=config.get("messages"),
            images=[_image_dict(img) for img in config.get("images") or []],
        )


def _image_dict(image: Any) -> dict[str, str]:
    if isinstance(image, dict):
        return {
            "base64": image.get("base64", ""),
            "media_type": image.get("media_type") or image.get("mediaType") or "image/jpeg",
        }
    return image.to_dict()


def _raw_base64(image: dict[str, str]) -> str:
    data = image["base64"]
    if data.startswith("data:"):
        return data.split(",", 1)[1]
    return data


def _data_url(image: dict[str, str]) -> str:
    data = image["base64"]
    if data.startswith("data:"):
        return data
    return f"data:{image['media_type']};base64,{data}"


def get_model_info(model_id: str) -> ModelInfo | None:
    return _MODELS_BY_ID.get(model_id)


class AIService:
    """Routes a prompt to the provider that serves the requested model."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.ai_request_timeout_seconds)
        )

    async def close(self) -> None:
        await self._client.aclose()

    def is_provider_configured(self, provider: str) -> bool:
        match provider:
            case "openai":
                return bool(self.settings.openai_api_key)
            case "anthropic":
                return bool(self.settings.anthropic_api_key)
            case "google":
                return bool(self.settings.google_api_key)
            case "mock":
                return True
        return False

    def get_available_models(self) -> list[ModelInfo]:
        return [m for m in AI_MODELS if self.is_provider_configured(m.provider)]

    async def call_ai_by_model(
        self, model: str | None, prompt: str, config: dict[str, Any] | None = None
    ) -> AIResponse:
        """Call ``model`` with ``prompt``.

        Never raises for provider problems; failures come back as
        ``AIResponse(success=False, error=...)``.
        """
        info = get_model_info(model or "")
        if info is None:
            return AIResponse(success=False, model=model or "", error=f"Unknown model: {model}")
        if not self.is_provider_configured(info.provider):
            return AIResponse(
                success=False,
                model=info.id,
                error=f"{info.provider.upper()}_API_KEY environment variable is not set",
            )

        options = CallOptions.from_config(config, self.settings.ai_default_max_tokens)
        logger.debug("Calling AI model", model=info.id, provider=info.provider)
        try:
            if info.provider == "mock":
                return self._call_mock(info, prompt, options)
            if info.supports_image_generation:
                return await self._call_google(info, prompt, options, generate_images=True)
            match info.provider:
                case "openai":
                    return await self._call_openai(info, prompt, options)
                case "anthropic":
                    return await self._call_anthropic(info, prompt, options)
                case _:
                    return await self._call_google(info, prompt, options)
        except httpx.TimeoutException:
            logger.error("AI request timed out", model=info.id)
            return AIResponse(success=False, model=info.id, error="AI request timed out")
        except httpx.HTTPStatusError as e:
            logger.error(
                "AI provider returned an error",
                model=info.id,
                status_code=e.response.status_code,
            )
            return AIResponse(
                success=False,
                model=info.id,
                error=f"{info.provider} API error {e.response.status_code}: "
                f"{_error_message(e.response)}",
            )
        except (httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            logger.error("AI call failed", model=info.id, error=str(e))
            return AIResponse(
                success=False, model=info.id, error=str(e) or f"{info.provider} API call failed"
            )

    def _conversation(self, prompt: str, options: CallOptions) -> list[dict[str, str]]:
        if options.messages:
            return [{"role": m["role"], "content": m["content"]} for m in options.messages]
        return [{"role": "user", "content": prompt}]

    async def _call_openai(self, info: ModelInfo, prompt: str, options: CallOptions) -> AIResponse:
        messages: list[dict[str, Any]] = []
        if options.system_message:
            messages.append({"role": "system", "content": options.system_message})
        conversation = self._conversation(prompt, options)
        if options.images:
            last = conversation[-1]
            conversation[-1] = {
                "role": last["role"],
                "content": [{"type": "text", "text": last["content"]}]
                + [
                    {"type": "image_url", "image_url": {"url": _data_url(img)}}
                    for img in options.images
                ],
            }
        messages.extend(conversation)

        response = await self._client.post(
            f"{self.settings.openai_base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.settings.openai_api_key}"},
            json={
                "model": info.id,
                "messages": messages,
                "temperature": options.temperature,
                "max_tokens": options.max_tokens,
                "top_p": options.top_p,
            },
        )
        response.raise_for_status()
        body = response.json()
        usage = body.get("usage") or {}
        return AIResponse(
            success=True,
            content=body["choices"][0]["message"].get("content") or "",
            model=info.id,
            usage={
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
            },
        )

    async def _call_anthropic(
        self, info: ModelInfo, prompt: str, options: CallOptions
    ) -> AIResponse:
        conversation: list[dict[str, Any]] = list(self._conversation(prompt, options))
        if options.images:
            last = conversation[-1]
            conversation[-1] = {
                "role": last["role"],
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": img["media_type"],
                            "data": _raw_base64(img),
                        },
                    }
                    for img in options.images
                ]
                + [{"type": "text", "text": last["content"]}],
            }
        payload: dict[str, Any] = {
            "model": info.id,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": conversation,
        }
        if options.system_message:
            payload["system"] = options.system_message

        response = await self._client.post(
            f"{self.settings.anthropic_base_url}/messages",
            headers={
                "x-api-key": self.settings.anthropic_api_key or "",
                "anthropic-version": self.settings.anthropic_version,
            },
            json=payload,
        )
        response.raise_for_status()
        body = response.json()
        text = "".join(
            block.get("text", "")
            for block in body.get("content", [])
            if block.get("type") == "text"
        )
        usage = body.get("usage") or {}
        return AIResponse(
            success=True,
            content=text,
            model=info.id,
            usage={
                "prompt_tokens": usage.get("input_tokens", 0),
                "completion_tokens": usage.get("output_tokens", 0),
            },
        )

    async def _call_google(
        self,
        info: ModelInfo,
        prompt: str,
        options: CallOptions,
        generate_images: bool = False,
    ) -> AIResponse:
        contents: list[dict[str, Any]] = [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in self._conversation(prompt, options)
        ]
        if options.images:
            contents[-1]["parts"] = [
                {"inlineData": {"mimeType": img["media_type"], "data": _raw_base64(img)}}
                for img in options.images
            ] + contents[-1]["parts"]
        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
                "topP": options.top_p,
            },
        }
        if options.system_message:
            payload["systemInstruction"] = {"parts": [{"text": options.system_message}]}

        response = await self._client.post(
            f"{self.settings.google_base_url}/models/{info.id}:generateContent",
            params={"key": self.settings.google_api_key},
            json=payload,
        )
        response.raise_for_status()
        body = response.json()

        text_parts: list[str] = []
        images: list[dict[str, str]] = []
        for candidate in body.get("candidates", []):
            for part in candidate.get("content", {}).get("parts", []):
                if part.get("text"):
                    text_parts.append(part["text"])
                if part.get("inlineData"):
                    images.append(
                        {
                            "base64": part["inlineData"]["data"],
                            "mime_type": part["inlineData"].get("mimeType", "image/png"),
                        }
                    )
        usage = body.get("usageMetadata") or {}
        content = "".join(text_parts)
        if generate_images and not content:
            content = f"Generated {len(images)} image(s)"
        return AIResponse(
            success=True,
            content=content,
            model=info.id,
            usage={
                "prompt_tokens": usage.get("promptTokenCount", 0),
                "completion_tokens": usage.get("candidatesTokenCount", 0),
            },
            generated_images=images or None,
        )

    def _call_mock(self, info: ModelInfo, prompt: str, options: CallOptions) -> AIResponse:
        if info.supports_image_generation:
            return AIResponse(
                success=True,
                content="Generated 1 mock image(s)",
                model=info.id,
                generated_images=[{"base64": _MOCK_IMAGE_BASE64, "mime_type": "image/png"}],
            )
        if not prompt and options.messages:
            prompt = options.messages[-1]["content"]
        if options.images:
            content = f"Mock analysis of {len(options.images)} image(s) for: {prompt}"
        else:
            content = f"Mock response to: {prompt}"
        return AIResponse(
            success=True,
            content=content,
            model=info.id,
            usage={"prompt_tokens": len(prompt) // 4, "completion_tokens": len(content) // 4},
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", error))
    if error:
        return str(error)
    return response.text[:500]
