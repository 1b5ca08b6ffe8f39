"""
naukri.py — Naukri plugin using Playwright (required — the site renders from
its own JSON APIs and blocks plain HTTP clients).
Rather than scraping the DOM, we load the page and read the API response the
site fetches for itself.
"""

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from bs4 import BeautifulSoup

from config import NAUKRI
from models import CompanyDetails, Detail, ExternalCompany, InlineCompany, Listing
from monitoring import get_logger
from plugins.base import BrowserPlugin, clean_text, host_matches

logger = get_logger("plugins.naukri")

DOMAIN = "naukri.com"
BASE_URL = "https://www.naukri.com"
SEARCH_API = "jobapi/v3/search"
JOB_API = "jobapi/v4/job"
COMPANY_API = "companyapi/v1/company-group-data/desktop"


class NaukriPlugin(BrowserPlugin):
    def __init__(
        self,
        default_url: str = NAUKRI["default_url"],
        response_timeout: float = NAUKRI["response_timeout"],
        results_per_page: int = NAUKRI["results_per_page"],
    ):
        super().__init__(name="naukri", response_timeout=response_timeout)
        self.default_url = default_url
        self.results_per_page = results_per_page

    def can_handle(self, url: str) -> bool:
        return host_matches(url, DOMAIN)

    def fetch_listings(self, url: Optional[str] = None) -> list[Listing]:
        target = url or self.default_url
        logger.info(f"Fetching Naukri search results via {target}")
        try:
            payload = self._capture_json(
                target,
                matcher=lambda response_url: SEARCH_API in response_url,
                rewrite=self._rewrite_search_request,
            )
        except Exception as e:
            logger.error(f"Naukri fetch_listings failed for {target}: {type(e).__name__}: {e}")
            return []
        if payload is None:
            return []
        return self._parse_search_payload(payload)

    def _rewrite_search_request(self, request_url: str) -> Optional[str]:
        """Ask the search API for a full page of results."""
        if SEARCH_API not in request_url:
            return None
        parts = urlparse(request_url)
        query = dict(parse_qsl(parts.query, keep_blank_values=True))
        query["noOfResults"] = str(self.results_per_page)
        return urlunparse(parts._replace(query=urlencode(query)))

    def _parse_search_payload(self, payload: dict) -> list[Listing]:
        listings = []
        for job in payload.get("jobDetails") or []:
            try:
                placeholders = {
                    p.get("type"): p.get("label")
                    for p in job.get("placeholders") or []
                }
                listings.append(Listing(
                    id=str(job["jobId"]),
                    title=job["title"],
                    company=job.get("companyName") or "",
                    location=placeholders.get("location") or "Unknown",
                    link=BASE_URL + job["jdURL"],
                    stipend=placeholders.get("salary") or "Not disclosed",
                    duration=placeholders.get("duration") or "Unknown",
                    source=self.name,
                ))
            except (KeyError, TypeError, AttributeError) as e:
                logger.debug(f"Skipping malformed Naukri job entry: {e}")
                continue
        logger.info(f"Naukri: parsed {len(listings)} listings")
        return listings

    def fetch_details(self, listing: Listing) -> Optional[Detail]:
        logger.info(f"Fetching details for {listing.title} at {listing.link}")
        try:
            payload = self._capture_json(
                listing.link,
                matcher=lambda response_url: JOB_API in response_url,
            )
            if payload is None:
                return None
            return self._parse_job_payload(payload)
        except Exception as e:
            logger.error(f"Naukri fetch_details failed for {listing.link}: {type(e).__name__}: {e}")
            return None

    def _parse_job_payload(self, payload: dict) -> Optional[Detail]:
        jd = payload.get("jobDetails")
        if not jd:
            return None

        locations = ", ".join(loc.get("label", "") for loc in jd.get("locations") or [])
        skills = [
            skill.get("label", "")
            for group in (jd.get("keySkills") or {}).values()
            for skill in group or []
        ]
        meta_lines = [
            f"Title: {jd.get('title', '')}",
            f"Company: {(jd.get('companyDetail') or {}).get('name', '')}",
            f"Location: {locations}",
            f"Salary: {(jd.get('salaryDetail') or {}).get('label') or jd.get('salary', '')}",
            f"Experience: {jd.get('experienceText', '')}",
            f"Employment type: {jd.get('employmentType', '')}",
            f"Posted: {jd.get('createdDate', '')}",
            f"Skills: {', '.join(s for s in skills if s)}",
        ]
        description = clean_text(BeautifulSoup(jd.get("description") or "", "html.parser").get_text("\n"))

        return Detail(
            meta=clean_text("\n".join(meta_lines)),
            description=description,
            company_ref=self._company_ref(jd),
        )

    def _company_ref(self, jd: dict):
        if jd.get("companyPageUrl"):
            return ExternalCompany(f"{BASE_URL}/{jd['companyPageUrl'].lstrip('/')}")

        company = jd.get("companyDetail")
        if company:
            return InlineCompany(CompanyDetails(
                name=company.get("name") or "",
                about=clean_text(BeautifulSoup(company.get("details") or "", "html.parser").get_text("\n")),
                location=company.get("address") or "",
                website_link=company.get("websiteUrl") or None,
            ))
        return None

    def _fetch_external_company(self, url: str) -> Optional[CompanyDetails]:
        payload = self._capture_json(url, matcher=lambda response_url: COMPANY_API in response_url)
        if payload is None:
            return None
        return self._parse_company_payload(payload)

    def _parse_company_payload(self, payload: dict) -> CompanyDetails:
        sections = payload.get("sections") or {}
        about = ((sections.get("aboutUs") or {}).get("data") or {}).get("description") or ""
        more_info = (sections.get("moreInfo") or {}).get("data") or {}
        tags = payload.get("tags") or []

        return CompanyDetails(
            name=payload.get("commonCompanyName") or "",
            about=clean_text(BeautifulSoup(about, "html.parser").get_text("\n")),
            location=more_info.get("Headquarters") or "",
            industry=tags[0] if tags else None,
            size=more_info.get("Company Size") or None,
            website_link=more_info.get("Website") or None,
        )
