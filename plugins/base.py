"""
base.py — Source plugin contract, with helpers for the two kinds of source:
static pages fetched over HTTP, and JS-heavy sites whose data only shows up
in the browser's own API calls.
"""

import random
from abc import ABC, abstractmethod
from typing import Callable, Optional
from urllib.parse import urlparse

import httpx

from models import CompanyDetails, CompanyRef, Detail, ExternalCompany, InlineCompany, Listing
from monitoring import get_logger

logger = get_logger("plugins.base")

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36 Edg/120.0.0.0",
]


def clean_text(text: str) -> str:
    """Strip every line, drop blank ones, and collapse inner whitespace."""
    lines = (" ".join(line.split()) for line in (text or "").splitlines())
    return "\n".join(line for line in lines if line)


def host_matches(url: str, domain: str) -> bool:
    """True if the URL's host is `domain` or one of its subdomains."""
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return False
    return host == domain or host.endswith("." + domain)


class BasePlugin(ABC):
    """
    A listing source. Implementations must not raise out of the fetch
    methods: failures are logged and reported as an empty list or None.
    """

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def can_handle(self, url: str) -> bool:
        pass

    @abstractmethod
    def fetch_listings(self, url: Optional[str] = None) -> list[Listing]:
        pass

    @abstractmethod
    def fetch_details(self, listing: Listing) -> Optional[Detail]:
        pass

    def fetch_company_details(self, ref: Optional[CompanyRef]) -> Optional[CompanyDetails]:
        """
        Resolve a company reference returned by fetch_details.
        Inline data is handed back as-is; external pages are fetched.
        """
        if ref is None:
            return None
        if isinstance(ref, InlineCompany):
            return ref.details
        if isinstance(ref, ExternalCompany):
            try:
                return self._fetch_external_company(ref.url)
            except Exception as e:
                logger.error(f"[{self.name}] Company fetch failed for {ref.url}: {type(e).__name__}: {e}")
                return None
        logger.warning(f"[{self.name}] Unsupported company reference: {ref!r}")
        return None

    @abstractmethod
    def _fetch_external_company(self, url: str) -> Optional[CompanyDetails]:
        pass

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"


class StaticPagePlugin(BasePlugin):
    """Plugin backed by plain HTTP GETs and HTML selector extraction."""

    def __init__(self, name: str, timeout: float = 20.0, client: Optional[httpx.Client] = None):
        super().__init__(name)
        self._client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={
                "User-Agent": random.choice(USER_AGENTS),
                "Accept-Language": "en-US,en;q=0.9",
            },
        )

    def _get_html(self, url: str) -> str:
        response = self._client.get(url)
        response.raise_for_status()
        return response.text

    def close(self):
        self._client.close()


class BrowserPlugin(BasePlugin):
    """Plugin that drives a headless browser and reads intercepted API responses."""

    def __init__(
        self,
        name: str,
        response_timeout: float = 10.0,
        navigation_timeout: float = 30.0,
        headless: bool = True,
    ):
        super().__init__(name)
        self.response_timeout = response_timeout
        self.navigation_timeout = navigation_timeout
        self.headless = headless

    def _capture_json(
        self,
        url: str,
        matcher: Callable[[str], bool],
        rewrite: Optional[Callable[[str], Optional[str]]] = None,
    ) -> Optional[dict]:
        """
        Open `url` in a fresh headless browser and return the JSON body of the
        first response whose URL satisfies `matcher`. Returns None once
        response_timeout elapses. `rewrite` may return a replacement URL for
        outgoing requests. The browser is closed on every exit path.
        """
        from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
        from playwright.sync_api import sync_playwright

        with sync_playwright() as p:
            browser = p.chromium.launch(headless=self.headless)
            try:
                context = browser.new_context(
                    user_agent=random.choice(USER_AGENTS),
                    viewport={"width": 1920, "height": 1080},
                )
                page = context.new_page()
                if rewrite is not None:
                    page.route("**/*", lambda route: _continue_route(route, rewrite))

                with page.expect_response(
                    lambda response: matcher(response.url),
                    timeout=self.response_timeout * 1000,
                ) as response_info:
                    page.goto(url, wait_until="commit", timeout=self.navigation_timeout * 1000)
                return response_info.value.json()
            except PlaywrightTimeoutError:
                logger.warning(
                    f"[{self.name}] No matching API response within "
                    f"{self.response_timeout:.0f}s for {url}"
                )
                return None
            finally:
                browser.close()


def _continue_route(route, rewrite: Callable[[str], Optional[str]]):
    new_url = rewrite(route.request.url)
    if new_url and new_url != route.request.url:
        route.continue_(url=new_url)
    else:
        route.continue_()
