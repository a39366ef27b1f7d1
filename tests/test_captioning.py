"""Tests for image captioning and image storage."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

from market_rag.core.models.blocks import IMAGE_PLACEHOLDER
from market_rag.infrastructure.captioning.openai_captioner import (
    OpenAICaptioner,
    PlaceholderCaptioner,
    truncate_caption,
)
from market_rag.infrastructure.storage.local_image_storage import LocalImageStorage


def _completion(content: str) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


class TestCaptioner:
    """Caption tests; the OpenAI client is mocked."""

    def test_truncate(self) -> None:
        """Captions are whitespace-normalized and capped."""
        assert truncate_caption("  上证  指数\n走势 ", 60) == "上证 指数 走势"
        assert truncate_caption("x" * 100, 60) == "x" * 60
        assert truncate_caption("", 60) == IMAGE_PLACEHOLDER

    def test_placeholder_captioner(self) -> None:
        """The placeholder captioner always returns the placeholder."""
        assert PlaceholderCaptioner().describe(b"png") == IMAGE_PLACEHOLDER

    def test_describe_uses_model_reply(self) -> None:
        """The model reply becomes the caption."""
        captioner = OpenAICaptioner()
        captioner._client = MagicMock()
        captioner._client.chat.completions.create.return_value = _completion("沪深300指数走势图")

        assert captioner.describe(b"png") == "沪深300指数走势图"
        kwargs = captioner._client.chat.completions.create.call_args.kwargs
        image_part = kwargs["messages"][0]["content"][1]
        assert image_part["image_url"]["url"].startswith("data:image/png;base64,")

    def test_describe_failure_gives_placeholder(self) -> None:
        """API errors give the placeholder."""
        captioner = OpenAICaptioner()
        captioner._client = MagicMock()
        captioner._client.chat.completions.create.side_effect = RuntimeError("offline")

        assert captioner.describe(b"png") == IMAGE_PLACEHOLDER

    def test_empty_image(self) -> None:
        """Empty bytes are not sent to the model."""
        captioner = OpenAICaptioner()
        captioner._client = MagicMock()

        assert captioner.describe(b"") == IMAGE_PLACEHOLDER
        captioner._client.chat.completions.create.assert_not_called()


class TestLocalImageStorage:
    """Image storage tests."""

    def test_save_returns_relative_path(self, tmp_path: Path) -> None:
        """Images are written under images/ with a sanitized name."""
        storage = LocalImageStorage(tmp_path)

        relative = storage.save(b"bytes", "../weird name!.jpg")

        assert relative == "images/weird_name.png"
        assert (tmp_path / relative).read_bytes() == b"bytes"
