"""
pipeline.py — Run orchestration for the Internship Hunter.

A run fetches candidate listings, drops anything already stored or
blacklisted, then processes the survivors one at a time: detail fetch,
AI extraction & match, company resolution, persist. Progress is streamed
as RunEvents; the stream always ends with exactly one complete or error.
"""

import json
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterator, Optional

from ai_service import AIService, load_resume_text
from companies import complete_company, fetch_and_analyze_company
from config import PIPELINE_POLITENESS_DELAY, RESUME_FILE
from deduplication import filter_new_listings
from exceptions import InternshipNotFoundError, PluginNotFoundError, PresetNotFoundError, StoreError
from models import Internship, Listing, RunEvent, RunLog, now_iso
from monitoring import get_logger, log_pipeline_step, log_run_summary
from registry import PluginRegistry, build_default_registry
from storage import Storage

logger = get_logger("pipeline")


class Pipeline:
    def __init__(
        self,
        storage: Optional[Storage] = None,
        registry: Optional[PluginRegistry] = None,
        ai: Optional[AIService] = None,
        resume_file: Path = RESUME_FILE,
        resume_loader: Callable[[Path], str] = load_resume_text,
        politeness_delay: float = PIPELINE_POLITENESS_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.storage = storage or Storage()
        self.registry = registry or build_default_registry()
        self.ai = ai or AIService()
        self.resume_file = resume_file
        self.resume_loader = resume_loader
        self.politeness_delay = politeness_delay
        self._sleep = sleep
        self._run_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._run_lock.locked()

    def run(self, preset_name: Optional[str] = None) -> Iterator[RunEvent]:
        """
        Execute one run and yield progress events.
        Abandoning the iterator stops work at the next event.
        """
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Run requested while another run is in progress")
            yield RunEvent.error("A run is already in progress.")
            return

        try:
            yield from self._run(preset_name)
        finally:
            self._run_lock.release()

    def _run(self, preset_name: Optional[str]) -> Iterator[RunEvent]:
        run_start = time.time()
        run_log = RunLog(run_date=now_iso(), preset=preset_name)

        logger.info("=" * 60)
        logger.info(f"INTERNSHIP HUNTER — Starting run{f' (preset: {preset_name})' if preset_name else ''}")
        logger.info("=" * 60)

        # ===== 1. SETUP =====
        try:
            self.storage.load()
            urls = self.storage.get_preset(preset_name) if preset_name else None
        except PresetNotFoundError:
            logger.error(f"Preset {preset_name} not found")
            yield RunEvent.error(f"Preset {preset_name} not found.")
            return
        except StoreError as e:
            logger.error(f"Store unavailable: {e}")
            yield RunEvent.error(f"Store unavailable: {e}")
            return

        try:
            resume_text = self.resume_loader(self.resume_file)
            if not resume_text:
                logger.info("Running without a resume — matches will be 'No Resume'")

            # ===== 2. FETCH =====
            if urls is not None:
                logger.info(f"Using preset: {preset_name} with {len(urls)} URLs")
                yield RunEvent.status(f"Using preset: {preset_name}...")
                listings = self.registry.fetch_from_urls(urls)
            else:
                yield RunEvent.status("Fetching listings from all sources...")
                listings = self.registry.fetch_all()
            run_log.listings_fetched = len(listings)
            log_pipeline_step(logger, "Fetching", 0, len(listings))

            # ===== 3. FILTER =====
            new_listings = filter_new_listings(listings, self.storage)
            run_log.listings_new = len(new_listings)
            log_pipeline_step(logger, "Already-seen filter", len(listings), len(new_listings))
            yield RunEvent.status(f"Found {len(new_listings)} new internships to process.")

            if not new_listings:
                self._finish(run_log, run_start)
                yield RunEvent.complete("No new internships found.")
                return

            # ===== 4. PER LISTING =====
            for listing in new_listings:
                try:
                    yield from self._process_listing(listing, resume_text, run_log)
                except StoreError:
                    raise
                except Exception as e:
                    run_log.errors.append(f"{listing.source}/{listing.id}: {type(e).__name__}: {e}")
                    logger.error(f"Failed processing {listing.title} at {listing.company}: {type(e).__name__}: {e}")
                    yield RunEvent.status(f"Failed to process {listing.company}: {e}")

        except StoreError as e:
            run_log.errors.append(str(e))
            self._finish(run_log, run_start)
            yield RunEvent.error(f"Store unavailable: {e}")
            return
        except Exception as e:
            run_log.errors.append(f"{type(e).__name__}: {e}")
            logger.error(f"Run aborted: {type(e).__name__}: {e}")
            self._finish(run_log, run_start)
            yield RunEvent.error(f"Run failed: {e}")
            return

        self._finish(run_log, run_start)
        yield RunEvent.complete(f"Run completed. Saved {run_log.internships_saved} new internships.")

    def _process_listing(self, listing: Listing, resume_text: str, run_log: RunLog) -> Iterator[RunEvent]:
        logger.info(f"Processing: {listing.title} at {listing.company}")
        yield RunEvent.status(f"Analyzing {listing.company}...")

        plugin = self.registry.get(listing.source)

        # Detail
        detail = plugin.fetch_details(listing)
        if detail is None:
            run_log.details_failed += 1
            yield RunEvent.status(f"Failed to fetch details for {listing.company}")
            return

        # Extract & match
        yield RunEvent.status("Extracting details & matching resume...")
        enrichment = self.ai.extract_and_match(detail.meta, detail.description, resume_text)
        if enrichment is None:
            logger.info(f"No AI enrichment for {listing.id}; keeping the raw description")

        # Company
        company = self.storage.get_company(listing.company)
        if company is not None:
            logger.info(f"Using cached company analysis for {listing.company}")
            yield RunEvent.status(f"Using cached analysis for {listing.company}...")
        else:
            yield RunEvent.status(f"Verifying company {listing.company}...")
            company = fetch_and_analyze_company(
                self.storage, self.ai, plugin, listing.company, detail.company_ref, listing.location,
            )
            run_log.companies_analyzed += 1
            if company.details is None:
                yield RunEvent.status(f"Failed to fetch company details for {listing.company}")

        # Persist
        internship = Internship.from_listing(
            listing,
            detail,
            extracted=enrichment.details if enrichment else None,
            match=enrichment.match if enrichment else None,
        )
        if self.storage.save_internship(internship):
            run_log.internships_saved += 1

        yield RunEvent.saved(internship, company)

        self._sleep(self.politeness_delay)

    def _finish(self, run_log: RunLog, run_start: float):
        run_log.duration_seconds = time.time() - run_start
        log_run_summary(
            logger,
            listings_fetched=run_log.listings_fetched,
            listings_new=run_log.listings_new,
            internships_saved=run_log.internships_saved,
            details_failed=run_log.details_failed,
            companies_analyzed=run_log.companies_analyzed,
            errors=run_log.errors,
            duration=run_log.duration_seconds,
        )

    def retry_enrichment(self, internship_id: str) -> Internship:
        """
        Re-run whatever enrichment a stored internship is missing: the match
        (and extracted fields) and/or its company's details and analysis.
        """
        stored = self.storage.get_internship(internship_id)
        if stored is None:
            raise InternshipNotFoundError(f"Internship {internship_id} not found")

        logger.info(f"Retrying AI enrichment for {stored.title} at {stored.company}")
        internship = replace(stored)

        if internship.match_analysis is None:
            resume_text = self.resume_loader(self.resume_file)
            meta = json.dumps(internship.to_dict(), ensure_ascii=False)
            enrichment = self.ai.extract_and_match(meta, internship.description, resume_text)
            if enrichment is not None:
                internship.apply_extracted(enrichment.details)
                internship.match_analysis = enrichment.match

        try:
            plugin = self.registry.get(internship.source)
        except PluginNotFoundError:
            logger.warning(f"Plugin not found for source: {internship.source}")
            plugin = None

        complete_company(
            self.storage,
            self.ai,
            plugin,
            internship.company,
            internship.location,
            internship.company_detail_page_url,
        )

        self.storage.update_internship(internship)
        return internship
