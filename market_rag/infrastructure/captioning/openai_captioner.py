import base64
import logging
import threading

from openai import OpenAI

from market_rag.core.models.blocks import IMAGE_PLACEHOLDER
from market_rag.core.protocols.captioner import CAPTION_MAX_LENGTH

logger = logging.getLogger(__name__)

CAPTION_PROMPT = (
    "用不超过30个字描述这张图片的关键信息（如图表类型、标的、趋势、关键数值）。"
    "只输出描述本身。"
)


def truncate_caption(caption: str, max_length: int = CAPTION_MAX_LENGTH) -> str:
    caption = " ".join((caption or "").split())
    return caption[:max_length] if caption else IMAGE_PLACEHOLDER


class PlaceholderCaptioner:
    """Captioner used when no vision model is configured."""

    def describe(self, data: bytes) -> str:
        return IMAGE_PLACEHOLDER


class OpenAICaptioner:
    """Image captions from an OpenAI-compatible vision chat endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434/v1",
        api_key: str = "ollama",
        model: str = "qwen2.5vl:7b",
        timeout: float = 60.0,
        max_length: int = CAPTION_MAX_LENGTH,
    ):
        """Initialize captioner.

        Args:
            base_url: OpenAI-compatible API base URL.
            api_key: API key.
            model: Vision model name.
            timeout: Request timeout in seconds.
            max_length: Caption length cap in characters.
        """
        self._client = OpenAI(base_url=base_url, api_key=api_key, timeout=timeout)
        self._model = model
        self._max_length = max_length
        self._lock = threading.Lock()
        logger.info(f"Captioner initialized: model={model}, base_url={base_url}")

    def describe(self, data: bytes) -> str:
        """Short caption, or the placeholder on any failure."""
        if not data:
            return IMAGE_PLACEHOLDER

        image_url = f"data:image/png;base64,{base64.b64encode(data).decode('ascii')}"
        try:
            with self._lock:
                response = self._client.chat.completions.create(
                    model=self._model,
                    messages=[
                        {
                            "role": "user",
                            "content": [
                                {"type": "text", "text": CAPTION_PROMPT},
                                {"type": "image_url", "image_url": {"url": image_url}},
                            ],
                        }
                    ],
                    temperature=0.1,
                    max_tokens=100,
                )
            caption = response.choices[0].message.content or ""
        except Exception as e:
            logger.warning(f"Caption generation failed: {e}")
            return IMAGE_PLACEHOLDER

        return truncate_caption(caption, self._max_length)
