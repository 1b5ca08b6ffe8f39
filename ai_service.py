"""
ai_service.py — Claude-backed enrichment: structured extraction + resume
match, company legitimacy analysis, and resume tailoring.

Every call is preceded by a fixed politeness delay. Rate limits (429) and
server errors (5xx) are retried with exponential backoff; on a rate limit the
next API key is used for the retry. Anything else, or an exhausted retry
budget, comes back as None. With no API keys configured every call returns
None immediately.
"""

import time
from pathlib import Path
from typing import Any, Callable, Optional

import anthropic
from pypdf import PdfReader
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from config import (
    AI_BASE_DELAY, AI_MAX_ATTEMPTS, AI_MAX_TOKENS, AI_MODEL,
    AI_POLITENESS_DELAY, AI_WEB_SEARCH_MAX_USES, ANTHROPIC_API_KEYS, RESUME_FILE,
    parse_api_keys,
)
from exceptions import ConfigError
from models import (
    VERDICT_AVERAGE, VERDICT_GOOD, VERDICT_NO_RESUME, VERDICT_POOR, VERDICTS,
    Enrichment, ExtractedDetails, MatchAnalysis,
)
from monitoring import get_logger

logger = get_logger("ai_service")

RATE_LIMIT = "rate limit"
SERVICE_UNAVAILABLE = "service unavailable"

EXTRACTION_TOOL_NAME = "record_internship"
RESUME_TOOL_NAME = "record_resume"

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

EXTRACTION_TOOL = {
    "name": EXTRACTION_TOOL_NAME,
    "description": "Record the structured internship details and the resume match analysis.",
    "input_schema": {
        "type": "object",
        "properties": {
            "details": {
                "type": "object",
                "properties": {
                    "description": {
                        "type": "string",
                        "description": "The role description rewritten as compact markdown: responsibilities, requirements, perks. No filler.",
                    },
                    "stipend": {"type": "string"},
                    "company": {"type": "string"},
                    "location": {"type": "string"},
                    "locationType": {"type": "string", "enum": ["Remote", "On-site", "Hybrid", "Unknown"]},
                    "duration": {"type": "string"},
                    "ppo": {"type": "boolean", "description": "Whether a pre-placement offer is mentioned."},
                    "skills": _STRING_LIST,
                    "applyBy": {"type": "string"},
                    "postedOn": {"type": "string"},
                },
                "required": [
                    "description", "stipend", "company", "location", "locationType",
                    "duration", "skills", "applyBy", "postedOn",
                ],
            },
            "match": {
                "type": "object",
                "properties": {
                    "score": {"type": "integer", "minimum": 0, "maximum": 100},
                    "verdict": {"type": "string", "enum": list(VERDICTS)},
                    "summary": {"type": "string"},
                    "pros": _STRING_LIST,
                    "cons": _STRING_LIST,
                },
                "required": ["score", "verdict", "summary", "pros", "cons"],
            },
        },
        "required": ["details", "match"],
    },
}

RESUME_TOOL = {
    "name": RESUME_TOOL_NAME,
    "description": "Record the tailored resume content.",
    "input_schema": {
        "type": "object",
        "properties": {
            "summary": {"type": "string"},
            "skills": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {"category": {"type": "string"}, "items": _STRING_LIST},
                    "required": ["category", "items"],
                },
            },
            "experience": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {"type": "string"},
                        "company": {"type": "string"},
                        "period": {"type": "string"},
                        "bullets": _STRING_LIST,
                    },
                    "required": ["title", "company", "bullets"],
                },
            },
            "projects": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "techStack": _STRING_LIST,
                        "bullets": _STRING_LIST,
                    },
                    "required": ["name", "bullets"],
                },
            },
            "education": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "institution": {"type": "string"},
                        "degree": {"type": "string"},
                        "period": {"type": "string"},
                    },
                    "required": ["institution", "degree"],
                },
            },
        },
        "required": ["summary", "skills", "experience", "projects", "education"],
    },
}

EXTRACTION_PROMPT = """You are helping a student triage internship listings.

Below is a raw internship listing scraped from a job board, followed by the candidate's resume.

1. Extract the listing's details. Rewrite the description as compact markdown
   (short bullet lists for responsibilities, requirements and perks). Use "" for
   anything the listing does not state. Only set ppo when a pre-placement offer
   is mentioned.
2. Score how well the candidate fits the role from 0 to 100:
   - 70-100 "Good Match": most required skills present, level appropriate
   - 40-69 "Average Match": partial overlap, some notable gaps
   - 0-39 "Poor Match": little overlap or clearly wrong level
   If no resume is provided, use score 0 and verdict "No Resume".
   Keep the summary under 60 words; list 1-4 pros and 1-4 cons.

LISTING METADATA:
{meta}

LISTING DESCRIPTION:
{description}

CANDIDATE RESUME:
{resume}

Record your answer with the {tool_name} tool."""

COMPANY_PROMPT = """Assess whether the following company is a legitimate, worthwhile employer for an intern.

Company: {name}
Location: {location}
About (as published on the job board): {about}

Search the web before answering:
1. Verify the company exists and check its reputation (reviews, news, complaints about unpaid or fake internships).
2. Find its official website.
3. Estimate its size (New/Small/Medium/Large).
4. Decide whether it is a well-known brand or a small/unknown entity.

Answer in markdown using exactly this format:
**Rating:** [1-10]/10
**Verdict:** [Good/Bad/Neutral]
**Company Size:** [New/Small/Medium/Large]
**Website:** [URL or "Not Found"]
**Legitimacy:** [Verified/Unverified/Suspicious]
**Summary:** [2 sentences on why]
**Pros:** [1-2 bullets]
**Cons:** [1-2 bullets]"""

TAILOR_PROMPT = """Tailor the candidate's resume to the job below.

Rules:
- Use only facts present in the resume; never invent employers, dates or metrics.
- Reorder and rephrase bullets so the most relevant experience comes first.
- Mirror the job's terminology where the candidate genuinely has the skill.
- Keep it to one page: at most 4 bullets per role or project.

JOB:
{job}

CANDIDATE PROFILE:
{profile}

RESUME (personal details removed):
{resume}

Record the result with the {tool_name} tool."""


def load_resume_text(path: Path = RESUME_FILE) -> str:
    """Read the resume as plain text. PDFs are parsed; a missing file yields ""."""
    path = Path(path)
    if not path.exists():
        logger.info(f"No resume found at {path}")
        return ""

    try:
        if path.suffix.lower() != ".pdf":
            return path.read_text(encoding="utf-8").strip()
        reader = PdfReader(str(path))
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n".join(page for page in pages if page).strip()
    except Exception as e:
        logger.warning(f"Failed to read resume at {path}: {type(e).__name__}: {e}")
        return ""


def load_api_keys(raw) -> list[str]:
    """
    Turn configured credentials (a delimited string or a list) into an
    ordered key list. Raises ConfigError when none are set or an entry is
    not a non-empty string.
    """
    keys = parse_api_keys(raw) if isinstance(raw, str) else list(raw or [])
    if not keys:
        raise ConfigError("ANTHROPIC_API_KEYS not set")
    invalid = [key for key in keys if not isinstance(key, str) or not key.strip()]
    if invalid:
        raise ConfigError(f"{len(invalid)} configured API key(s) are empty or not strings")
    return [key.strip() for key in keys]


def transient_kind(error: Exception) -> Optional[str]:
    """Classify an API error as one of the two retryable kinds, or None."""
    status = getattr(error, "status_code", None)
    if isinstance(error, anthropic.RateLimitError) or status == 429:
        return RATE_LIMIT
    if isinstance(error, anthropic.InternalServerError) or (isinstance(status, int) and status >= 500):
        return SERVICE_UNAVAILABLE
    return None


def _verdict_for_score(score: int) -> str:
    if score >= 70:
        return VERDICT_GOOD
    if score >= 40:
        return VERDICT_AVERAGE
    return VERDICT_POOR


class AIService:
    def __init__(
        self,
        api_keys=ANTHROPIC_API_KEYS,
        model: str = AI_MODEL,
        max_tokens: int = AI_MAX_TOKENS,
        max_attempts: int = AI_MAX_ATTEMPTS,
        base_delay: float = AI_BASE_DELAY,
        politeness_delay: float = AI_POLITENESS_DELAY,
        web_search_max_uses: int = AI_WEB_SEARCH_MAX_USES,
        client_factory: Optional[Callable[[str], Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        try:
            self.api_keys = load_api_keys(api_keys)
        except ConfigError as e:
            logger.warning(f"{e} — AI enrichment disabled (degraded mode)")
            self.api_keys = []
        self.model = model
        self.max_tokens = max_tokens
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.politeness_delay = politeness_delay
        self.web_search_max_uses = web_search_max_uses
        self.key_index = 0
        self._client_factory = client_factory or _default_client
        self._clients: dict[int, Any] = {}
        self._sleep = sleep

        if self.api_keys:
            logger.info(f"AI service ready with {len(self.api_keys)} API key(s), model {self.model}")

    @property
    def enabled(self) -> bool:
        return bool(self.api_keys)

    def _client(self):
        if self.key_index not in self._clients:
            self._clients[self.key_index] = self._client_factory(self.api_keys[self.key_index])
        return self._clients[self.key_index]

    def _rotate_key(self):
        self.key_index = (self.key_index + 1) % len(self.api_keys)
        logger.info(f"Rotated to API key #{self.key_index + 1} of {len(self.api_keys)}")

    def _create(self, **request):
        return self._client().messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            **request,
        )

    def _call(self, operation: str, **request) -> Optional[Any]:
        """Send one messages.create request under the retry policy."""
        if not self.enabled:
            return None

        self._sleep(self.politeness_delay)

        def before_retry(retry_state):
            kind = transient_kind(retry_state.outcome.exception())
            if kind == RATE_LIMIT:
                self._rotate_key()
            logger.warning(
                f"{operation} hit {kind} (attempt {retry_state.attempt_number}/{self.max_attempts}); "
                f"retrying in {retry_state.next_action.sleep:.1f}s"
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay),
            retry=retry_if_exception(lambda e: transient_kind(e) is not None),
            before_sleep=before_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            return retrying(self._create, **request)
        except Exception as e:
            kind = transient_kind(e)
            if kind is None:
                logger.error(f"{operation} failed: {type(e).__name__}: {e}")
            else:
                logger.error(f"{operation} gave up after {self.max_attempts} attempts ({kind})")
            return None

    def extract_and_match(self, meta: str, description: str, resume_text: str) -> Optional[Enrichment]:
        """Structured extraction of a raw listing plus a resume match score."""
        if not self.enabled:
            return None

        prompt = EXTRACTION_PROMPT.format(
            meta=meta or "Not available",
            description=description or "Not available",
            resume=resume_text or "No resume provided.",
            tool_name=EXTRACTION_TOOL_NAME,
        )
        response = self._call(
            "Extraction & match",
            messages=[{"role": "user", "content": prompt}],
            tools=[EXTRACTION_TOOL],
            tool_choice={"type": "tool", "name": EXTRACTION_TOOL_NAME},
        )
        if response is None:
            return None

        data = _tool_input(response, EXTRACTION_TOOL_NAME)
        if data is None:
            logger.warning("Extraction response did not contain a tool call")
            return None

        try:
            return _build_enrichment(data, has_resume=bool(resume_text and resume_text.strip()))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Malformed extraction payload: {e}")
            return None

    def analyze_company(
        self,
        name: str,
        location: Optional[str] = None,
        about: Optional[str] = None,
    ) -> Optional[str]:
        """Web-grounded legitimacy report for a company, as markdown."""
        if not self.enabled:
            return None

        logger.info(f"Analyzing company: {name}")
        prompt = COMPANY_PROMPT.format(
            name=name,
            location=location or "Unknown",
            about=(about or "Not provided")[:1500],
        )
        response = self._call(
            f"Company analysis for {name}",
            messages=[{"role": "user", "content": prompt}],
            tools=[{
                "type": "web_search_20250305",
                "name": "web_search",
                "max_uses": self.web_search_max_uses,
            }],
        )
        if response is None:
            return None

        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        ).strip()
        return text or None

    def tailor_resume(
        self,
        job_description: str,
        redacted_resume_text: str,
        profile: Optional[dict] = None,
    ) -> Optional[dict]:
        """Structured resume content tailored to a job. Rendering happens elsewhere."""
        if not self.enabled:
            return None

        prompt = TAILOR_PROMPT.format(
            job=job_description,
            profile=profile or "Not provided",
            resume=redacted_resume_text,
            tool_name=RESUME_TOOL_NAME,
        )
        response = self._call(
            "Resume tailoring",
            messages=[{"role": "user", "content": prompt}],
            tools=[RESUME_TOOL],
            tool_choice={"type": "tool", "name": RESUME_TOOL_NAME},
        )
        if response is None:
            return None

        data = _tool_input(response, RESUME_TOOL_NAME)
        if data is None:
            logger.warning("Resume tailoring response did not contain a tool call")
            return None
        if profile:
            data = {**data, "profile": profile}
        return data


def _default_client(api_key: str) -> anthropic.Anthropic:
    # Retries are handled by AIService so a 429 can switch keys
    return anthropic.Anthropic(api_key=api_key, max_retries=0)


def _tool_input(response, tool_name: str) -> Optional[dict]:
    for block in response.content:
        if getattr(block, "type", None) == "tool_use" and block.name == tool_name:
            return dict(block.input)
    return None


def _build_enrichment(data: dict, has_resume: bool) -> Enrichment:
    details = data["details"]
    match = data["match"]

    ppo = details.get("ppo")
    extracted = ExtractedDetails(
        description=details.get("description") or "",
        stipend=details.get("stipend") or "",
        company=details.get("company") or "",
        location=details.get("location") or "",
        location_type=details.get("locationType") or "",
        duration=details.get("duration") or "",
        ppo=ppo if isinstance(ppo, bool) else None,
        skills=[str(skill) for skill in details.get("skills") or [] if skill],
        apply_by=details.get("applyBy") or "",
        posted_on=details.get("postedOn") or "",
    )

    if has_resume:
        score = max(0, min(100, int(match.get("score", 0))))
        verdict = match.get("verdict")
        if verdict not in VERDICTS or verdict == VERDICT_NO_RESUME:
            verdict = _verdict_for_score(score)
    else:
        score, verdict = 0, VERDICT_NO_RESUME

    analysis = MatchAnalysis(
        score=score,
        verdict=verdict,
        summary=match.get("summary") or "",
        pros=[str(p) for p in match.get("pros") or []],
        cons=[str(c) for c in match.get("cons") or []],
    )
    return Enrichment(details=extracted, match=analysis)
