"""
internshala.py — Internshala plugin. Plain server-rendered HTML, so a single
HTTP GET plus CSS selectors per call is enough.
"""

import re
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from config import INTERNSHALA
from models import CompanyDetails, Detail, ExternalCompany, InlineCompany, Listing
from monitoring import get_logger
from plugins.base import StaticPagePlugin, clean_text, host_matches

logger = get_logger("plugins.internshala")

DOMAIN = "internshala.com"
DURATION_RE = re.compile(r"\b(?:weeks?|months?)\b", re.IGNORECASE)
HIRING_SINCE_RE = re.compile(r"hiring since\s+(.+)", re.IGNORECASE)
OPPORTUNITIES_RE = re.compile(r"(\d[\d,]*)\s+opportunit", re.IGNORECASE)
CANDIDATES_RE = re.compile(r"(\d[\d,]*)\s+candidates? hired", re.IGNORECASE)

# Descriptions are compressed by the AI service later; cap what we send it
MAX_DESCRIPTION_CHARS = 6000


class InternshalaPlugin(StaticPagePlugin):
    def __init__(self, list_url: str = INTERNSHALA["list_url"], timeout: float = INTERNSHALA["timeout"], client=None):
        super().__init__(name="internshala", timeout=timeout, client=client)
        self.list_url = list_url
        parsed = urlparse(list_url)
        self.base_url = f"{parsed.scheme}://{parsed.netloc}"

    def can_handle(self, url: str) -> bool:
        return host_matches(url, DOMAIN)

    def fetch_listings(self, url: Optional[str] = None) -> list[Listing]:
        target = url or self.list_url
        logger.info(f"Fetching listing page {target}")
        try:
            html = self._get_html(target)
        except Exception as e:
            logger.warning(f"Internshala listing fetch failed for {target}: {type(e).__name__}: {e}")
            return []
        return self._parse_listing_page(html)

    def _parse_listing_page(self, html: str) -> list[Listing]:
        soup = BeautifulSoup(html, "html.parser")
        cards = soup.select(".individual_internship[internshipid]")
        logger.info(f"Internshala: found {len(cards)} internship cards")

        listings = []
        for card in cards:
            try:
                listing = self._parse_card(card)
            except Exception as e:
                logger.debug(f"Skipping malformed Internshala card: {e}")
                continue
            if listing:
                listings.append(listing)
        return listings

    def _parse_card(self, card) -> Optional[Listing]:
        internship_id = (card.get("internshipid") or "").strip()
        title_link = card.select_one(".job-internship-name a") or card.select_one("a.job-title-href")
        if not internship_id or title_link is None:
            return None

        title = title_link.get_text(strip=True)
        href = title_link.get("href")
        if not title or not href:
            return None

        company_el = card.select_one(".company-name")
        location = ", ".join(
            a.get_text(strip=True) for a in card.select(".locations a") if a.get_text(strip=True)
        )
        stipend_el = card.select_one(".stipend")

        duration = ""
        for item in card.select(".row-1-item"):
            text = item.get_text(" ", strip=True)
            if DURATION_RE.search(text):
                duration = text
                break

        return Listing(
            id=internship_id,
            title=title,
            company=company_el.get_text(strip=True) if company_el else "",
            location=location,
            link=urljoin(self.base_url, href),
            stipend=stipend_el.get_text(strip=True) if stipend_el else "",
            duration=duration,
            source=self.name,
        )

    def fetch_details(self, listing: Listing) -> Optional[Detail]:
        logger.info(f"Fetching details for {listing.title} at {listing.link}")
        try:
            html = self._get_html(listing.link)
            return self._parse_detail_page(html, listing)
        except Exception as e:
            logger.error(f"Failed to fetch details for {listing.link}: {type(e).__name__}: {e}")
            return None

    def _parse_detail_page(self, html: str, listing: Listing) -> Optional[Detail]:
        soup = BeautifulSoup(html, "html.parser")

        body = soup.select_one(".internship_details") or soup.select_one(".detail_view")
        if body is None:
            logger.warning(f"No detail section found on {listing.link}")
            return None

        meta_lines = [
            f"Title: {listing.title}",
            f"Company: {listing.company}",
            f"Location: {listing.location}",
        ]
        other_details = soup.select_one(".internship_other_details_container")
        if other_details:
            meta_lines.append(clean_text(other_details.get_text("\n")))

        skills = [el.get_text(strip=True) for el in soup.select(".round_tabs_container .round_tabs")]
        if skills:
            meta_lines.append("Skills: " + ", ".join(skills))

        status = soup.select_one(".status-container")
        if status:
            meta_lines.append("Posted: " + clean_text(status.get_text(" ")))

        description = clean_text(body.get_text("\n"))[:MAX_DESCRIPTION_CHARS]

        return Detail(
            meta=clean_text("\n".join(meta_lines)),
            description=description,
            company_ref=self._company_ref(soup, listing),
        )

    def _company_ref(self, soup, listing: Listing):
        about = soup.select_one(".about_company_text_container")
        if about is not None:
            return InlineCompany(self._parse_company_block(soup, listing.company, listing.location))

        company_link = soup.select_one("a[href*='/company/']")
        if company_link and company_link.get("href"):
            return ExternalCompany(urljoin(self.base_url, company_link["href"]))
        return None

    def _parse_company_block(self, soup, name: str, location: str = "") -> CompanyDetails:
        about = soup.select_one(".about_company_text_container")
        website = soup.select_one(".website_link a")

        details = CompanyDetails(
            name=name,
            location=location,
            about=clean_text(about.get_text("\n")) if about else "",
            website_link=website.get("href") if website else None,
        )

        for activity in soup.select(".activity_container .activity"):
            text = activity.get_text(" ", strip=True)
            hiring = HIRING_SINCE_RE.search(text)
            opportunities = OPPORTUNITIES_RE.search(text)
            candidates = CANDIDATES_RE.search(text)
            if hiring:
                details.hiring_since = hiring.group(1).strip()
            elif opportunities:
                details.opportunities_posted = opportunities.group(1)
            elif candidates:
                details.candidates_hired = candidates.group(1)

        return details

    def _fetch_external_company(self, url: str) -> Optional[CompanyDetails]:
        html = self._get_html(url)
        soup = BeautifulSoup(html, "html.parser")
        heading = soup.select_one("h1")
        name = heading.get_text(strip=True) if heading else ""
        details = self._parse_company_block(soup, name)
        if not details.name and not details.about:
            return None
        return details
