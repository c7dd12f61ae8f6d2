"""Remote image download client."""

from dataclasses import dataclass

import httpx

from intake_tracker.services.acquisition import ImageAcquisitionError, ImageFetcher


@dataclass
class HttpxImageFetcher(ImageFetcher):
    """Image fetcher using httpx."""

    http_client: httpx.AsyncClient
    timeout: float = 20.0

    @classmethod
    def create(cls, timeout: float = 20.0) -> "HttpxImageFetcher":
        """Create a fetcher with a managed httpx session."""
        return cls(
            http_client=httpx.AsyncClient(follow_redirects=True), timeout=timeout
        )

    async def fetch(self, url: str) -> tuple[bytes, str | None]:
        """Download the URL and return its body and content type."""
        try:
            response = await self.http_client.get(url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ImageAcquisitionError(f"Cannot load image from {url}") from exc
        return response.content, response.headers.get("content-type")

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
