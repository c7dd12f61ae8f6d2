"""OpenAI Responses API client for food photo analysis."""

from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from intake_tracker.services.analysis import (
    VisionClient,
    VisionServiceError,
    VisionTransportError,
)


@dataclass
class OpenAIVisionClient(VisionClient):
    """Vision client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIVisionClient":
        """Create an OpenAI vision client."""
        # Timeouts are enforced by the caller; retries are a user action.
        return cls(client=AsyncOpenAI(api_key=api_key, max_retries=0))

    async def complete(
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        prompt: str,
    ) -> str:
        """Call OpenAI Responses API in JSON output mode."""
        request_payload: dict[str, object] = {
            "model": model,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {"type": "input_image", "image_url": image_data_url},
                    ],
                }
            ],
            "text": {"format": {"type": "json_object"}},
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        try:
            response = await self.client.responses.create(**request_payload)
        except openai.APIConnectionError as exc:
            raise VisionTransportError(f"OpenAI is unreachable: {exc}") from exc
        except openai.APIStatusError as exc:
            raise VisionServiceError(
                f"OpenAI returned HTTP {exc.status_code}: {exc.message}"
            ) from exc
        return response.output_text or ""

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
