"""
companies.py — Cache-first company resolution and company management.

A company is fetched and analyzed at most once; afterwards its cached record
is reused by every internship that names it, until an explicit regenerate.
"""

from typing import Optional

from deduplication import normalize_company
from exceptions import CompanyNotFoundError
from models import CompanyDetails, CompanyRecord, CompanyRef, ExternalCompany
from monitoring import get_logger

logger = get_logger("companies")


def fetch_and_analyze_company(
    storage,
    ai,
    plugin,
    name: str,
    company_ref: Optional[CompanyRef],
    location: str = "",
) -> CompanyRecord:
    """
    Cache miss path: pull company details through the owning plugin, run the
    web-grounded analysis, and persist whatever was obtained.
    """
    details = plugin.fetch_company_details(company_ref) if plugin is not None else None
    if details is None:
        logger.warning(f"No company details available for {name}")

    analysis = ai.analyze_company(
        name,
        (details.location if details else "") or location,
        details.about if details else None,
    )
    if analysis is None:
        logger.warning(f"Company analysis unavailable for {name}")

    return storage.save_company(name, details=details, analysis=analysis)


def complete_company(
    storage,
    ai,
    plugin,
    name: str,
    location: str = "",
    detail_page_url: Optional[str] = None,
) -> Optional[CompanyRecord]:
    """
    Fill in whatever the cache lacks for one company. Details are fetched only
    when no record exists; analysis runs whenever it is missing.
    Returns the current record, or None if nothing could be obtained.
    """
    record = storage.get_company(name)
    if record is not None and record.analysis:
        return record

    details = record.details if record else None
    if record is None and detail_page_url and plugin is not None:
        logger.info(f"Company {name} not cached — fetching {detail_page_url}")
        details = plugin.fetch_company_details(ExternalCompany(detail_page_url))

    analysis = ai.analyze_company(
        name,
        (details.location if details else "") or location,
        details.about if details else None,
    )

    if analysis is None and (record is not None or details is None):
        return record
    return storage.save_company(record.name if record else name, details=details, analysis=analysis)


def list_companies(storage) -> list[dict]:
    """
    Every known company: cached records first, then names that only appear on
    stored internships. Each entry carries its blacklist state and internships.
    """
    companies = storage.get_companies()
    internships = storage.get_internships(include_blacklisted=True)

    by_company: dict[str, list] = {}
    display_names: dict[str, str] = {}
    for internship in internships:
        key = normalize_company(internship.company)
        by_company.setdefault(key, []).append(internship.to_dict())
        display_names.setdefault(key, internship.company)

    results = []
    listed = set()
    for name, record in companies.items():
        key = normalize_company(name)
        listed.add(key)
        results.append({
            "name": name,
            **record.to_dict(),
            "isBlacklisted": storage.is_blacklisted(name),
            "internships": by_company.get(key, []),
        })

    for key, name in display_names.items():
        if key in listed:
            continue
        results.append({
            "name": name,
            "details": None,
            "analysis": None,
            "savedOn": None,
            "isBlacklisted": storage.is_blacklisted(name),
            "internships": by_company[key],
        })

    return results


def add_company(
    storage,
    ai,
    name: str,
    location: str = "",
    about: str = "",
    website_link: Optional[str] = None,
) -> CompanyRecord:
    """
    Manually add or update a company. Fields not given keep their cached
    values; analysis runs only if none is cached yet.
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Company name is required")

    existing = storage.get_company(name)
    known = existing.details if existing and existing.details else CompanyDetails()
    details = CompanyDetails(
        name=name,
        location=location or known.location,
        about=about or known.about,
        industry=known.industry,
        size=known.size,
        website_link=website_link or known.website_link,
        hiring_since=known.hiring_since,
        candidates_hired=known.candidates_hired,
        opportunities_posted=known.opportunities_posted,
    )
    analysis = existing.analysis if existing else None

    record = storage.save_company(name, details=details, analysis=analysis)
    if analysis:
        return record

    analysis = ai.analyze_company(name, details.location, details.about)
    if analysis is None:
        return record
    return storage.save_company(name, details=details, analysis=analysis)


def regenerate_analysis(storage, ai, name: str) -> Optional[str]:
    """
    Re-run the analysis for a cached company. A failed call keeps the
    previous analysis and returns None.
    """
    record = storage.get_company(name)
    if record is None:
        raise CompanyNotFoundError(f"Company {name} not found")

    details = record.details
    analysis = ai.analyze_company(
        record.name,
        details.location if details else None,
        details.about if details else None,
    )
    if analysis is None:
        logger.warning(f"Regenerating analysis for {record.name} failed; keeping the cached one")
        return None

    storage.save_company(record.name, details=details, analysis=analysis)
    return analysis


def internships_with_companies(storage, filter: str = "all") -> list[dict]:
    """Stored internships joined with their cached company data."""
    results = []
    for internship in storage.get_internships(filter):
        company = storage.get_company(internship.company)
        results.append({
            **internship.to_dict(),
            "companyDetails": company.details.to_dict() if company and company.details else None,
            "companyAnalysis": company.analysis if company else None,
        })
    return results
