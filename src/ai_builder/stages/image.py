"""
Image stage: generate an illustration alongside the main completion.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..backend.client import BackendClient
from ..config import settings
from ..exceptions import ApplicationError, MalformedResponseError
from .base import Stage

logger = logging.getLogger(__name__)


def image_requested(image_type: Optional[str], agent_id: str, image_agent_id: Optional[str] = None) -> bool:
    """Whether a generation should run the image stage."""
    return bool(image_type) and image_type != "none" and agent_id != (image_agent_id or settings.IMAGE_AGENT_ID)


@dataclass
class ImageRequest:
    """Input of the image stage."""

    prompt: str
    image_type: str
    body: Dict[str, Any] = field(default_factory=dict)
    extra_body: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImageArtifact:
    """A generated image, by URL or inline base64 data."""

    url: Optional[str] = None
    b64_json: Optional[str] = None
    mime_type: str = "image/png"
    revised_prompt: Optional[str] = None

    @classmethod
    def from_response(cls, response: Any) -> "ImageArtifact":
        """
        Extract the image from the shapes image backends return.

        Handles OpenAI-style {data: [...]}, Gemini-style candidates,
        {image: {...}} and flat {url | b64_json | data} objects.

        Raises:
            ApplicationError: If the payload carries an error or an empty data list
            MalformedResponseError: If no image can be found
        """
        if isinstance(response, str):
            try:
                response = json.loads(response)
            except json.JSONDecodeError:
                if response.startswith(("http://", "https://", "data:image/")):
                    return cls(url=response)
                raise MalformedResponseError("No image data in response") from None

        if not isinstance(response, dict):
            raise MalformedResponseError("No image data in response")

        if response.get("error"):
            error = response["error"]
            raise ApplicationError(
                f"Image generation API error: {error if isinstance(error, str) else json.dumps(error)}"
            )

        items = response.get("data")
        image: Optional[Dict[str, Any]] = None
        if isinstance(items, list):
            if not items:
                raise ApplicationError(response.get("message") or "Image generation returned empty data array.")
            image = items[0] if isinstance(items[0], dict) else None
        elif response.get("candidates"):
            parts = ((response["candidates"][0] or {}).get("content") or {}).get("parts") or []
            if parts:
                inline = parts[0].get("inlineData") or {}
                if inline.get("data"):
                    image = {"b64_json": inline["data"], "mime_type": inline.get("mimeType")}
                elif parts[0].get("url"):
                    image = {"url": parts[0]["url"]}
        elif isinstance(response.get("image"), dict):
            image = response["image"]
        elif response.get("url") or response.get("b64_json") or items:
            image = response

        if image is None:
            raise MalformedResponseError("No image data in response")

        b64 = image.get("b64_json") or image.get("data")
        if isinstance(b64, list):
            b64 = b64[0] if b64 else None
        url = image.get("url")
        if not url and not b64:
            raise MalformedResponseError("No image data in response")

        return cls(
            url=url,
            b64_json=None if url else b64,
            mime_type=image.get("mime_type") or image.get("mimeType") or "image/png",
            revised_prompt=image.get("revised_prompt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "b64_json": self.b64_json,
            "mime_type": self.mime_type,
            "revised_prompt": self.revised_prompt,
        }


class ImageStage(Stage[ImageRequest, ImageArtifact]):
    """Call the image generation agent."""

    name = "image"

    def __init__(
        self,
        client: BackendClient,
        agent_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(client, timeout=timeout if timeout is not None else settings.IMAGE_TIMEOUT)
        self.agent_id = agent_id or settings.IMAGE_AGENT_ID

    async def _execute(self, request: ImageRequest) -> ImageArtifact:
        payload = {
            "userPrompt": request.prompt,
            "body": {
                "imageType": request.image_type,
                "prompt": request.prompt,
                **request.body,
            },
            "extra_body": {
                "output_format": settings.IMAGE_OUTPUT_FORMAT,
                **request.extra_body,
            },
        }
        data = await self.client.post_envelope(settings.agent_path(self.agent_id), payload)
        artifact = ImageArtifact.from_response(data.response)
        logger.info(f"Image generated ({'url' if artifact.url else 'inline'}) for type {request.image_type}")
        return artifact
