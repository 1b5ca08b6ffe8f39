from types import SimpleNamespace
from typing import Optional

import httpx
import pytest

from models import (
    CompanyDetails, Detail, Enrichment, ExtractedDetails, ExternalCompany,
    Listing, MatchAnalysis, VERDICT_GOOD,
)
from plugins.base import BasePlugin
from storage import Storage


def make_listing(id="1001", company="Acme Labs", source="fake", **overrides) -> Listing:
    fields = dict(
        id=id,
        title="Backend Intern",
        company=company,
        location="Remote",
        link=f"https://jobs.example.com/{id}",
        stipend="₹10,000 /month",
        duration="3 Months",
        source=source,
    )
    fields.update(overrides)
    return Listing(**fields)


def api_error(error_cls, status: int, message: str = "boom"):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return error_cls(message, response=httpx.Response(status, request=request), body=None)


def tool_response(name: str, payload: dict):
    return SimpleNamespace(content=[SimpleNamespace(type="tool_use", name=name, input=payload)])


def text_response(*texts: str):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text) for text in texts])


class StubMessages:
    """Stands in for `client.messages`; replays outcomes in order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class StubClientFactory:
    """client_factory for AIService; every client shares one StubMessages."""

    def __init__(self, outcomes):
        self.messages = StubMessages(outcomes)
        self.keys_used = []

    def __call__(self, api_key: str):
        self.keys_used.append(api_key)
        return SimpleNamespace(api_key=api_key, messages=self.messages)


class FakePlugin(BasePlugin):
    def __init__(
        self,
        name: str = "fake",
        domain: str = "jobs.example.com",
        listings: Optional[list[Listing]] = None,
        company: Optional[CompanyDetails] = None,
        fail_listings: bool = False,
        missing_details: tuple = (),
    ):
        super().__init__(name)
        self.domain = domain
        self.listings = listings or []
        self.company = company or CompanyDetails(name="Acme Labs", location="Pune", about="Builds rockets.")
        self.fail_listings = fail_listings
        self.missing_details = set(missing_details)
        self.listing_calls = []
        self.detail_calls = []
        self.company_calls = []
        self.closed = False

    def can_handle(self, url: str) -> bool:
        return self.domain in url

    def fetch_listings(self, url=None):
        self.listing_calls.append(url)
        if self.fail_listings:
            raise RuntimeError("source down")
        return list(self.listings)

    def fetch_details(self, listing):
        self.detail_calls.append(listing.id)
        if listing.id in self.missing_details:
            return None
        return Detail(
            meta=f"Title: {listing.title}\nCompany: {listing.company}",
            description=f"Raw description for {listing.id}",
            company_ref=ExternalCompany(f"https://{self.domain}/company/{listing.company}"),
        )

    def _fetch_external_company(self, url):
        self.company_calls.append(url)
        return self.company

    def close(self):
        self.closed = True


class FakeAI:
    """Records enrichment calls; returns canned results."""

    def __init__(self, enrichment: Optional[Enrichment] = None, analysis: Optional[str] = "**Rating:** 8/10"):
        self.enrichment = enrichment
        self.analysis = analysis
        self.extract_calls = []
        self.company_calls = []

    def extract_and_match(self, meta, description, resume_text):
        self.extract_calls.append((meta, description, resume_text))
        return self.enrichment

    def analyze_company(self, name, location=None, about=None):
        self.company_calls.append((name, location, about))
        return self.analysis


@pytest.fixture
def storage(tmp_path):
    return Storage(tmp_path / "data")


@pytest.fixture
def enrichment():
    return Enrichment(
        details=ExtractedDetails(
            description="**Role:** build APIs",
            stipend="₹15,000 /month",
            company="Acme Labs Pvt Ltd",
            location="Bengaluru",
            location_type="Hybrid",
            duration="6 Months",
            ppo=True,
            skills=["Python", "SQL"],
            apply_by="1 Dec 2025",
            posted_on="2 days ago",
        ),
        match=MatchAnalysis(
            score=82,
            verdict=VERDICT_GOOD,
            summary="Strong backend fit.",
            pros=["Python"],
            cons=["No Go"],
        ),
    )
