"""Pytest configuration and fixtures."""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from citeshelf.client import ScholarAPIClient
from citeshelf.config import Settings
from citeshelf.models import Paper
from citeshelf.session import AuthSession

GOOD_TOKEN = "good-token"

ATTENTION = {
    "paperId": "204e3073870fae3d05bcbc2f6a8e263d9b72e776",
    "title": "Attention Is All You Need",
    "authors": [
        {"name": "Ashish Vaswani", "affiliation": "Google Brain"},
        {"name": "Noam Shazeer"},
    ],
    "venue": "Neural Information Processing Systems",
    "year": 2017,
    "abstract": "The dominant sequence transduction models...",
    "citationCount": 100000,
    "fieldsOfStudy": ["Computer Science"],
    "openAccessPdf": {"url": "https://arxiv.org/pdf/1706.03762", "status": "GREEN"},
}


@pytest.fixture
def sample_paper():
    """A fully populated paper."""
    return Paper.model_validate(ATTENTION)


@pytest.fixture
def empty_paper():
    """A paper with nothing but an id."""
    return Paper(paper_id="p-empty")


class FakeService:
    """In-process stand-in for the paper/citation/library API."""

    def __init__(self):
        self.papers = {ATTENTION["paperId"]: ATTENTION}
        self.citation_mode = "ok"
        self.citation_calls = 0
        self.failing_libraries = set()
        self.saved = []
        self.libraries = {
            "my_libraries": [
                {"id": 1, "name": "Thesis", "role": "creator", "paper_count": 3},
                {"id": 2, "name": "Reading group", "role": "creator"},
            ],
            "shared_with_me": [{"id": 3, "name": "Lab", "role": "viewer"}],
        }

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/api/citations/{paper_id}", self.citations)
        app.router.add_get("/api/papers/{paper_id}", self.paper)
        app.router.add_get("/api/libraries", self.list_libraries)
        app.router.add_post("/api/libraries", self.create_library)
        app.router.add_post("/api/libraries/{library_id}/papers", self.save_paper)
        return app

    @staticmethod
    def _authorized(request) -> bool:
        return request.headers.get("Authorization") == f"Bearer {GOOD_TOKEN}"

    async def citations(self, request):
        self.citation_calls += 1
        if self.citation_mode == "fail":
            return web.json_response(
                {"success": False, "message": "Failed to process citations."}, status=500
            )
        if self.citation_mode == "partial":
            return web.json_response(
                {"success": True, "data": [{"id": "apa", "label": "APA", "value": "<div>Remote APA</div>"}]}
            )
        if self.citation_mode == "html":
            return web.Response(text="<html>502 Bad Gateway</html>", content_type="application/json")
        if self.citation_mode == "bad_entry":
            return web.json_response({"success": True, "data": [{"id": "apa", "value": 123}]})
        return web.json_response(
            {
                "success": True,
                "data": [
                    {"id": "bibtex", "label": "BibTeX", "value": "@article{remote2017,}", "format": "text"},
                    {"id": "apa", "label": "APA", "value": "<div class=\"csl-entry\">Remote <i>APA</i></div>"},
                    {"id": "ieee", "label": "IEEE", "value": "<div>Remote IEEE</div>"},
                    {"id": "mla", "label": "MLA", "value": "<div>Remote MLA</div>"},
                    {"id": "vancouver", "label": "Vancouver", "value": "<div>Other</div>"},
                ],
            }
        )

    async def paper(self, request):
        data = self.papers.get(request.match_info["paper_id"])
        if data is None:
            return web.json_response({"message": "Paper not found"}, status=404)
        return web.json_response(data)

    async def list_libraries(self, request):
        if not self._authorized(request):
            return web.json_response({"message": "Invalid token"}, status=401)
        return web.json_response(self.libraries)

    async def create_library(self, request):
        if not self._authorized(request):
            return web.json_response({"message": "Invalid token"}, status=401)
        body = await request.json()
        if body.get("name") == "Thesis":
            return web.json_response({"message": "A library with this name already exists"}, status=409)
        return web.json_response(
            {
                "message": "Library created successfully",
                "library": {"id": 42, "name": body["name"], "description": body.get("description")},
            },
            status=201,
        )

    async def save_paper(self, request):
        if not self._authorized(request):
            return web.json_response({"message": "Invalid token"}, status=401)
        library_id = request.match_info["library_id"]
        if library_id in self.failing_libraries:
            return web.json_response({"message": "Paper already exists in library"}, status=409)
        self.saved.append((library_id, await request.json()))
        return web.json_response({"message": "Paper added"}, status=201)


@pytest_asyncio.fixture
async def service():
    """Running fake service."""
    fake = FakeService()
    server = TestServer(fake.app())
    await server.start_server()
    fake.url = f"http://{server.host}:{server.port}"
    yield fake
    await server.close()


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at an unreachable port until a test sets api_url."""
    return Settings(api_url="http://127.0.0.1:9", timeout=5, fallback_timeout=5, home_dir=tmp_path)


@pytest_asyncio.fixture
async def client(service, settings):
    """Client logged in against the fake service."""
    settings.api_url = service.url
    api = ScholarAPIClient(settings, AuthSession(GOOD_TOKEN))
    yield api
    await api.close()
