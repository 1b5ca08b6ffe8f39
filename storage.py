"""
storage.py — JSON snapshot store for internships, blacklist, company cache
and presets. The store is the single source of truth for the display layer.

Every record set lives in its own file and is rewritten whole on each
mutation. Accessors load lazily on first use, so callers may skip load().
A single writer per data directory is assumed; there is no file locking.
"""

import json
from dataclasses import replace
from pathlib import Path
from typing import Optional

from config import DATA_DIR
from deduplication import clean_company_name, normalize_company
from exceptions import InternshipNotFoundError, PresetNotFoundError, StoreError
from models import (
    FILTER_SEEN, FILTER_UNSEEN, INTERNSHIP_FILTERS,
    CompanyDetails, CompanyRecord, Internship, now_iso,
)
from monitoring import get_logger

logger = get_logger("storage")

INTERNSHIPS_FILE = "internships.json"
BLACKLIST_FILE = "blacklist.json"
COMPANIES_FILE = "companies.json"
PRESETS_FILE = "presets.json"


class Storage:
    def __init__(self, data_dir: Path = DATA_DIR):
        self.data_dir = Path(data_dir)
        self.internships_path = self.data_dir / INTERNSHIPS_FILE
        self.blacklist_path = self.data_dir / BLACKLIST_FILE
        self.companies_path = self.data_dir / COMPANIES_FILE
        self.presets_path = self.data_dir / PRESETS_FILE

        self._internships: list[Internship] = []
        self._blacklist: list[str] = []
        self._companies: dict[str, CompanyRecord] = {}
        self._presets: dict[str, list[str]] = {}
        self._loaded = False

    # --- Load / write ---

    def load(self):
        """(Re)read every snapshot. Missing files start out empty."""
        raw_internships = self._read_json(self.internships_path, list, [])
        raw_blacklist = self._read_json(self.blacklist_path, list, [])
        raw_companies = self._read_json(self.companies_path, dict, {})
        raw_presets = self._read_json(self.presets_path, dict, {})

        try:
            internships = [Internship.from_dict(item) for item in raw_internships]
            companies = {
                name: CompanyRecord.from_dict(name, data or {})
                for name, data in raw_companies.items()
            }
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StoreError(f"Malformed record in {self.data_dir}: {e}") from e

        if not all(isinstance(company, str) for company in raw_blacklist):
            raise StoreError(f"{self.blacklist_path} must be a list of company names")
        for name, urls in raw_presets.items():
            if not _is_url_list(urls):
                raise StoreError(f"Preset {name!r} in {self.presets_path} is not a list of URLs")

        self._internships = internships
        self._companies = companies
        self._blacklist = list(raw_blacklist)
        self._presets = {name: list(urls) for name, urls in raw_presets.items()}
        self._loaded = True

        logger.info(
            f"Loaded {len(self._internships)} internships, "
            f"{len(self._blacklist)} blacklisted companies, "
            f"{len(self._companies)} cached companies, and "
            f"{len(self._presets)} presets from {self.data_dir}"
        )

    def _ensure_loaded(self):
        if not self._loaded:
            self.load()

    def _read_json(self, path: Path, expected_type: type, default):
        if not path.exists():
            return default
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to read {path}: {e}") from e
        if not isinstance(data, expected_type):
            raise StoreError(f"{path} does not contain a JSON {expected_type.__name__}")
        return data

    def _write_json(self, path: Path, payload):
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise StoreError(f"Failed to write {path}: {e}") from e

    # Each mutation writes the new snapshot first and swaps it in only once
    # the write succeeded, so memory never runs ahead of disk.

    def _commit_internships(self, internships: list[Internship]):
        self._write_json(self.internships_path, [item.to_dict() for item in internships])
        self._internships = internships

    def _commit_blacklist(self, blacklist: list[str]):
        self._write_json(self.blacklist_path, blacklist)
        self._blacklist = blacklist

    def _commit_companies(self, companies: dict[str, CompanyRecord]):
        self._write_json(
            self.companies_path,
            {name: record.to_dict() for name, record in companies.items()},
        )
        self._companies = companies

    def _commit_presets(self, presets: dict[str, list[str]]):
        self._write_json(self.presets_path, presets)
        self._presets = presets

    # --- Internships ---

    def is_processed(self, internship_id: str) -> bool:
        """Check if an internship id is already stored."""
        self._ensure_loaded()
        return any(item.id == internship_id for item in self._internships)

    def get_internship(self, internship_id: str) -> Optional[Internship]:
        """Look up a stored internship by id, blacklisted or not."""
        self._ensure_loaded()
        for item in self._internships:
            if item.id == internship_id:
                return item
        return None

    def _index_of(self, internship_id: str) -> int:
        self._ensure_loaded()
        for index, item in enumerate(self._internships):
            if item.id == internship_id:
                return index
        raise InternshipNotFoundError(f"Internship {internship_id} not found")

    def get_internships(self, filter: str = "all", include_blacklisted: bool = False) -> list[Internship]:
        """
        Return stored internships newest-first, hiding blacklisted companies.
        `filter` narrows to "seen" or "unseen" records.
        """
        if filter not in INTERNSHIP_FILTERS:
            raise ValueError(f"Unknown internship filter: {filter!r}")
        self._ensure_loaded()

        results = []
        for item in reversed(self._internships):
            if not include_blacklisted and self.is_blacklisted(item.company):
                continue
            if filter == FILTER_SEEN and not item.seen:
                continue
            if filter == FILTER_UNSEEN and item.seen:
                continue
            results.append(item)
        return results

    def save_internship(self, internship: Internship) -> bool:
        """
        Store a new internship. A record whose id is already stored is left
        untouched, which makes retried pipeline steps harmless.
        Returns True if a record was created.
        """
        self._ensure_loaded()
        if self.is_processed(internship.id):
            logger.debug(f"Internship {internship.id} already stored; skipping save")
            return False

        record = replace(internship, seen=False, saved_on=now_iso())
        self._commit_internships(self._internships + [record])
        internship.seen = record.seen
        internship.saved_on = record.saved_on
        logger.info(f"Saved internship: {internship.title} at {internship.company}")
        return True

    def update_internship(self, internship: Internship):
        """Replace a stored internship, keeping its seen flag and timestamp."""
        index = self._index_of(internship.id)
        current = self._internships[index]
        record = replace(internship, seen=current.seen, saved_on=current.saved_on)

        updated = list(self._internships)
        updated[index] = record
        self._commit_internships(updated)
        internship.seen = record.seen
        internship.saved_on = record.saved_on
        logger.info(f"Updated internship {internship.id}")

    def toggle_seen(self, internship_id: str) -> bool:
        """Flip the seen flag. Returns the new value."""
        index = self._index_of(internship_id)
        record = replace(self._internships[index], seen=not self._internships[index].seen)

        updated = list(self._internships)
        updated[index] = record
        self._commit_internships(updated)
        logger.info(f"Toggled seen for {internship_id} to {record.seen}")
        return record.seen

    def delete_internship(self, internship_id: str):
        index = self._index_of(internship_id)
        self._commit_internships(self._internships[:index] + self._internships[index + 1:])
        logger.info(f"Deleted internship {internship_id}")

    # --- Blacklist ---

    def is_blacklisted(self, company: str) -> bool:
        self._ensure_loaded()
        key = normalize_company(company)
        return any(normalize_company(entry) == key for entry in self._blacklist)

    def get_blacklist(self) -> list[str]:
        self._ensure_loaded()
        return list(self._blacklist)

    def toggle_blacklist(self, company: str) -> bool:
        """Add or remove a company. Returns True if it is now blacklisted."""
        self._ensure_loaded()
        key = normalize_company(company)
        if self.is_blacklisted(company):
            self._commit_blacklist([entry for entry in self._blacklist if normalize_company(entry) != key])
            logger.info(f"Removed {company} from blacklist")
            return False

        self._commit_blacklist(self._blacklist + [clean_company_name(company)])
        logger.info(f"Added {company} to blacklist")
        return True

    # --- Company cache ---

    def _company_key(self, name: str) -> Optional[str]:
        key = normalize_company(name)
        for existing in self._companies:
            if normalize_company(existing) == key:
                return existing
        return None

    def get_company(self, name: str) -> Optional[CompanyRecord]:
        """Return the cached record for a company, matching on normalized name."""
        self._ensure_loaded()
        key = self._company_key(name)
        return self._companies[key] if key is not None else None

    def get_companies(self) -> dict[str, CompanyRecord]:
        self._ensure_loaded()
        return dict(self._companies)

    def save_company(
        self,
        name: str,
        details: Optional[CompanyDetails] = None,
        analysis: Optional[str] = None,
    ) -> CompanyRecord:
        """Upsert a company record. Overwrites every field; no merging here."""
        self._ensure_loaded()
        key = self._company_key(name) or clean_company_name(name)
        record = CompanyRecord(name=key, details=details, analysis=analysis, saved_on=now_iso())
        self._commit_companies({**self._companies, key: record})
        logger.info(f"Cached company data for {key}")
        return record

    # --- Presets ---

    def get_presets(self) -> dict[str, list[str]]:
        self._ensure_loaded()
        return {name: list(urls) for name, urls in self._presets.items()}

    def get_preset(self, name: str) -> list[str]:
        self._ensure_loaded()
        if name not in self._presets:
            raise PresetNotFoundError(f"Preset {name} not found")
        return list(self._presets[name])

    def save_preset(self, name: str, urls: list[str]):
        """Create or replace a named URL set. URL order is preserved."""
        if not name or not name.strip():
            raise ValueError("Preset name is required")
        if not _is_url_list(urls):
            raise ValueError("Preset URLs must be a list of strings")
        self._ensure_loaded()
        self._commit_presets({**self._presets, name: list(urls)})
        logger.info(f"Saved preset {name} with {len(urls)} URLs")

    def delete_preset(self, name: str):
        self._ensure_loaded()
        if name not in self._presets:
            raise PresetNotFoundError(f"Preset {name} not found")
        self._commit_presets({key: urls for key, urls in self._presets.items() if key != name})
        logger.info(f"Deleted preset {name}")


def _is_url_list(urls) -> bool:
    return isinstance(urls, list) and all(isinstance(url, str) for url in urls)
