"""
models.py — Data models for the Internship Hunter application.

Persisted records serialize with camelCase keys, which is what the
display layer reads from the JSON snapshots.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

FILTER_ALL = "all"
FILTER_SEEN = "seen"
FILTER_UNSEEN = "unseen"
INTERNSHIP_FILTERS = (FILTER_ALL, FILTER_SEEN, FILTER_UNSEEN)

VERDICT_GOOD = "Good Match"
VERDICT_AVERAGE = "Average Match"
VERDICT_POOR = "Poor Match"
VERDICT_NO_RESUME = "No Resume"
VERDICTS = (VERDICT_GOOD, VERDICT_AVERAGE, VERDICT_POOR, VERDICT_NO_RESUME)


def now_iso() -> str:
    return datetime.now().isoformat()


@dataclass
class Listing:
    """Minimal discovery record from a batch fetch. Never persisted directly."""
    id: str
    title: str
    company: str
    location: str
    link: str
    stipend: str
    duration: str
    source: str


@dataclass
class CompanyDetails:
    """Employer facts as scraped from a source."""
    name: str = ""
    location: str = ""
    about: str = ""
    industry: Optional[str] = None
    size: Optional[str] = None
    website_link: Optional[str] = None
    hiring_since: Optional[str] = None
    candidates_hired: Optional[str] = None
    opportunities_posted: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "location": self.location,
            "about": self.about,
            "industry": self.industry,
            "size": self.size,
            "websiteLink": self.website_link,
            "hiringSince": self.hiring_since,
            "candidatesHired": self.candidates_hired,
            "opportunitiesPosted": self.opportunities_posted,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CompanyDetails":
        return cls(
            name=data.get("name") or "",
            location=data.get("location") or "",
            about=data.get("about") or "",
            industry=data.get("industry"),
            size=data.get("size"),
            website_link=data.get("websiteLink"),
            hiring_since=data.get("hiringSince"),
            candidates_hired=data.get("candidatesHired"),
            opportunities_posted=data.get("opportunitiesPosted"),
        )


@dataclass(frozen=True)
class ExternalCompany:
    """Company details live on a separate page owned by the plugin."""
    url: str


@dataclass(frozen=True)
class InlineCompany:
    """Company details were already embedded in the detail payload."""
    details: CompanyDetails


CompanyRef = Union[ExternalCompany, InlineCompany]


@dataclass
class Detail:
    """Raw detail fetch result, before AI extraction."""
    meta: str
    description: str
    company_ref: Optional[CompanyRef] = None

    @property
    def company_detail_page_url(self) -> Optional[str]:
        if isinstance(self.company_ref, ExternalCompany):
            return self.company_ref.url
        return None


@dataclass
class MatchAnalysis:
    """Resume-to-listing fit produced by the AI service."""
    score: int
    verdict: str
    summary: str
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "verdict": self.verdict,
            "summary": self.summary,
            "pros": list(self.pros),
            "cons": list(self.cons),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MatchAnalysis":
        return cls(
            score=int(data.get("score", 0)),
            verdict=data.get("verdict", VERDICT_NO_RESUME),
            summary=data.get("summary", ""),
            pros=list(data.get("pros") or []),
            cons=list(data.get("cons") or []),
        )


@dataclass
class ExtractedDetails:
    """Structured fields the AI service pulls out of a raw detail page."""
    description: str = ""
    stipend: str = ""
    company: str = ""
    location: str = ""
    location_type: str = ""
    duration: str = ""
    ppo: Optional[bool] = None
    skills: list[str] = field(default_factory=list)
    apply_by: str = ""
    posted_on: str = ""


@dataclass
class Enrichment:
    details: ExtractedDetails
    match: MatchAnalysis


@dataclass
class CompanyRecord:
    """Cached trust data shared by every internship of one employer."""
    name: str
    details: Optional[CompanyDetails] = None
    analysis: Optional[str] = None
    saved_on: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "details": self.details.to_dict() if self.details else None,
            "analysis": self.analysis,
            "savedOn": self.saved_on,
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "CompanyRecord":
        details = data.get("details")
        return cls(
            name=name,
            details=CompanyDetails.from_dict(details) if details else None,
            analysis=data.get("analysis"),
            saved_on=data.get("savedOn"),
        )


@dataclass
class Internship:
    """Persisted, enriched record derived from a Listing."""
    id: str
    title: str
    company: str
    location: str
    link: str
    stipend: str
    duration: str
    source: str
    description: str = ""
    skills: list[str] = field(default_factory=list)
    posted_on: Optional[str] = None
    apply_by: Optional[str] = None
    location_type: Optional[str] = None
    ppo: Optional[bool] = None
    match_analysis: Optional[MatchAnalysis] = None
    company_detail_page_url: Optional[str] = None
    seen: bool = False
    saved_on: Optional[str] = None

    @classmethod
    def from_listing(
        cls,
        listing: Listing,
        detail: Detail,
        extracted: Optional[ExtractedDetails] = None,
        match: Optional[MatchAnalysis] = None,
    ) -> "Internship":
        """
        Merge a listing with whatever enrichment succeeded.
        The listing's company name is kept as-is because it keys the company
        cache and the blacklist.
        """
        internship = cls(
            id=listing.id,
            title=listing.title,
            company=listing.company,
            location=listing.location,
            link=listing.link,
            stipend=listing.stipend,
            duration=listing.duration,
            source=listing.source,
            description=detail.description,
            company_detail_page_url=detail.company_detail_page_url,
            match_analysis=match,
        )
        if extracted:
            internship.apply_extracted(extracted)
        return internship

    def apply_extracted(self, extracted: ExtractedDetails):
        """Overlay non-empty AI-extracted fields onto this record."""
        if extracted.description:
            self.description = extracted.description
        if extracted.stipend:
            self.stipend = extracted.stipend
        if extracted.location:
            self.location = extracted.location
        if extracted.duration:
            self.duration = extracted.duration
        if extracted.skills:
            self.skills = list(extracted.skills)
        if extracted.location_type:
            self.location_type = extracted.location_type
        if extracted.apply_by:
            self.apply_by = extracted.apply_by
        if extracted.posted_on:
            self.posted_on = extracted.posted_on
        if extracted.ppo is not None:
            self.ppo = extracted.ppo

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "link": self.link,
            "stipend": self.stipend,
            "duration": self.duration,
            "source": self.source,
            "description": self.description,
            "skills": list(self.skills),
            "postedOn": self.posted_on,
            "applyBy": self.apply_by,
            "locationType": self.location_type,
            "ppo": self.ppo,
            "matchAnalysis": self.match_analysis.to_dict() if self.match_analysis else None,
            "companyDetailPageUrl": self.company_detail_page_url,
            "seen": self.seen,
            "savedOn": self.saved_on,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Internship":
        match = data.get("matchAnalysis")
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            company=data.get("company", ""),
            location=data.get("location", ""),
            link=data.get("link", ""),
            stipend=data.get("stipend", ""),
            duration=data.get("duration", ""),
            source=data.get("source", ""),
            description=data.get("description", ""),
            skills=list(data.get("skills") or []),
            posted_on=data.get("postedOn"),
            apply_by=data.get("applyBy"),
            location_type=data.get("locationType"),
            ppo=data.get("ppo"),
            match_analysis=MatchAnalysis.from_dict(match) if match else None,
            company_detail_page_url=data.get("companyDetailPageUrl"),
            seen=bool(data.get("seen", False)),
            saved_on=data.get("savedOn"),
        )


@dataclass
class RunEvent:
    """One entry of the live progress stream."""
    type: str  # "status", "internship", "complete", "error"
    message: Optional[str] = None
    internship: Optional[Internship] = None
    company: Optional[CompanyRecord] = None

    @classmethod
    def status(cls, message: str) -> "RunEvent":
        return cls(type="status", message=message)

    @classmethod
    def complete(cls, message: str) -> "RunEvent":
        return cls(type="complete", message=message)

    @classmethod
    def error(cls, message: str) -> "RunEvent":
        return cls(type="error", message=message)

    @classmethod
    def saved(cls, internship: Internship, company: Optional[CompanyRecord]) -> "RunEvent":
        return cls(type="internship", internship=internship, company=company)

    @property
    def is_terminal(self) -> bool:
        return self.type in ("complete", "error")

    def to_dict(self) -> dict:
        payload: dict = {"type": self.type}
        if self.message is not None:
            payload["message"] = self.message
        if self.internship is not None:
            payload["internship"] = self.internship.to_dict()
            payload["company"] = self.company.to_dict() if self.company else None
        return payload


@dataclass
class RunLog:
    """Counters for a single pipeline run."""
    run_date: str
    preset: Optional[str] = None
    listings_fetched: int = 0
    listings_new: int = 0
    internships_saved: int = 0
    details_failed: int = 0
    companies_analyzed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0
