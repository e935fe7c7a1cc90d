"""
Summarizer stage: condense a long prompt before search and image generation.
"""

import logging
from typing import Optional

from ..backend.client import BackendClient
from ..config import settings
from ..exceptions import MalformedResponseError
from .base import Stage

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTION = (
    "Please deeply analyze the following text to understand its meaning, context, "
    "relationships, and key details. Synthesize and completely rephrase all content "
    "into one or two flowing narrative paragraphs that capture the essence, main ideas, "
    "and critical information. Output MUST be plain text only - NO headings, sections, "
    "bullet points, markdown, or structured formatting. Create continuous, "
    "natural-flowing prose that reads as if written from scratch based on comprehensive "
    "understanding, not a condensed or reorganized version of the original:\n\n"
)


class SummarizerStage(Stage[str, str]):
    """Ask the writing agent for a plain-prose summary of the prompt."""

    name = "summarizer"

    def __init__(
        self,
        client: BackendClient,
        agent_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(client, timeout=timeout if timeout is not None else settings.SUMMARIZER_TIMEOUT)
        self.agent_id = agent_id or settings.SUMMARIZER_AGENT_ID

    async def _execute(self, prompt: str) -> str:
        if not prompt or not prompt.strip():
            return prompt

        data = await self.client.post_envelope(
            settings.agent_path(self.agent_id),
            {
                "userPrompt": SUMMARY_INSTRUCTION + prompt,
                "body": {"writingStyle": "summarizer"},
            },
        )

        summary = data.response if isinstance(data.response, str) else None
        if not summary or not summary.strip():
            raise MalformedResponseError("Summarizer returned an empty summary")

        summary = summary.strip()
        logger.info(f"Summarized prompt from {len(prompt)} to {len(summary)} characters")
        return summary
