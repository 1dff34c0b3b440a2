"""Async client for the CiteShelf paper, citation and library API."""

import asyncio
import logging
import aiohttp
from typing import Any, Optional

from .cache import CitationCache
from .config import Settings
from .errors import APIError, NotAuthenticatedError
from .models import (
    CitationFormat,
    CitationStyle,
    FetchErr,
    FetchOk,
    FetchResult,
    LibraryListing,
    LibraryTarget,
    Paper,
    SavePayload,
)
from .session import AuthSession

logger = logging.getLogger(__name__)


async def _error_message(resp: aiohttp.ClientResponse) -> Optional[str]:
    try:
        data = await resp.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        return None
    if isinstance(data, dict):
        return data.get("message") or data.get("error")
    return None


class ScholarAPIClient:
    """Talk to the paper/citation/library service over HTTP."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[AuthSession] = None,
        cache: Optional[CitationCache] = None,
    ):
        """
        Initialize client.

        Args:
            settings: Base URL and timeouts. Defaults to Settings.from_env()
            session: Auth session used for library calls
            cache: Optional persistent cache for citation formats
        """
        self.settings = settings or Settings.from_env()
        self.auth = session or AuthSession()
        self.cache = cache
        self.http: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "ScholarAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _session(self) -> aiohttp.ClientSession:
        if self.http is None or self.http.closed:
            self.http = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout)
            )
        return self.http

    async def _request(
        self,
        method: str,
        path: str,
        authenticated: bool = False,
        payload: Optional[dict] = None,
    ) -> Any:
        """
        Send one request and decode the JSON body.

        Raises:
            NotAuthenticatedError: No token, or the service answered 401
            APIError: Any other non-2xx response
        """
        headers = {"Content-Type": "application/json"}
        if authenticated:
            headers.update(self.auth.authorization_header())

        url = self.settings.endpoint(path)
        async with self._session().request(method, url, json=payload, headers=headers) as resp:
            if resp.status == 401 and authenticated:
                logger.warning("%s %s rejected the access token", method, path)
                self.auth.invalidate()
                raise NotAuthenticatedError("Session expired, please log in again")
            if resp.status >= 400:
                raise APIError(resp.status, await _error_message(resp))
            if resp.status == 204:
                return {}
            return await resp.json(content_type=None)

    async def fetch_citation_formats(self, paper_id: str) -> FetchResult:
        """
        Fetch every citation style for a paper.

        Never raises: failures come back as FetchErr so the caller picks
        the fallback.
        """
        if self.cache:
            cached = self.cache.get(paper_id)
            if cached:
                logger.debug("Using cached citations for paper %s", paper_id)
                return FetchOk(formats=cached)

        logger.debug("Fetching citation formats for paper %s", paper_id)
        try:
            data = await self._request("GET", f"/api/citations/{paper_id}")
        except APIError as e:
            logger.warning("Citation service error for %s: %s", paper_id, e)
            return FetchErr(reason=f"Citation service error: {e}")
        except asyncio.TimeoutError:
            logger.warning("Citation service timed out for %s", paper_id)
            return FetchErr(reason="Citation service timeout")
        except aiohttp.ClientError as e:
            logger.warning("Could not fetch citations for %s: %s", paper_id, e)
            return FetchErr(reason=f"Network error: {e}")
        except ValueError as e:
            logger.warning("Citation service sent a non-JSON body for %s: %s", paper_id, e)
            return FetchErr(reason="Malformed citation response")

        if not isinstance(data, dict) or not data.get("success"):
            return FetchErr(reason="Citation service reported failure")

        entries = data.get("data") or []
        if not isinstance(entries, list):
            return FetchErr(reason="Malformed citation response")

        formats = []
        try:
            for entry in entries:
                try:
                    style = CitationStyle(entry.get("id"))
                except (ValueError, AttributeError):
                    continue
                formats.append(
                    CitationFormat(
                        id=style,
                        label=entry.get("label") or style.label,
                        value=entry.get("value") or "",
                        is_loaded=True,
                    )
                )
        except ValueError as e:
            # pydantic's ValidationError is a ValueError
            logger.warning("Malformed citation entry for %s: %s", paper_id, e)
            return FetchErr(reason="Malformed citation response")

        if self.cache and formats:
            self.cache.set(paper_id, formats)
        return FetchOk(formats=formats)

    async def get_paper(self, paper_id: str) -> Paper:
        data = await self._request("GET", f"/api/papers/{paper_id}")
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        paper = Paper.model_validate(data)
        if paper.paper_id is None:
            paper = paper.model_copy(update={"paper_id": paper_id})
        return paper

    async def list_libraries(self) -> LibraryListing:
        data = await self._request("GET", "/api/libraries", authenticated=True)
        return LibraryListing.model_validate(
            {
                "my_libraries": data.get("my_libraries") or [],
                "shared_with_me": data.get("shared_with_me") or [],
            }
        )

    async def save_paper(self, library_id, payload: SavePayload) -> dict:
        return await self._request(
            "POST",
            f"/api/libraries/{library_id}/papers",
            authenticated=True,
            payload=payload.model_dump(mode="json"),
        )

    async def create_library(
        self, name: str, description: Optional[str] = None, is_public: bool = False
    ) -> LibraryTarget:
        body = {"name": name, "is_public": is_public}
        if description:
            body["description"] = description
        data = await self._request("POST", "/api/libraries", authenticated=True, payload=body)
        library = data["library"]
        return LibraryTarget(
            id=library["id"],
            name=library["name"],
            role=library.get("role") or "creator",
            description=library.get("description"),
            paper_count=library.get("paper_count"),
        )

    async def close(self):
        """Close session."""
        if self.http:
            await self.http.close()
            self.http = None
