"""
registry.py — Ordered plugin registry. Resolves plugins by name or URL and
aggregates listings with per-plugin failure isolation.
"""

from typing import Optional

from exceptions import DuplicatePluginError, PluginNotFoundError
from models import Listing
from monitoring import get_logger, log_plugin_failure, log_plugin_success
from plugins.base import BasePlugin

logger = get_logger("registry")


class PluginRegistry:
    def __init__(self, plugins: Optional[list[BasePlugin]] = None):
        self._plugins: list[BasePlugin] = []
        for plugin in plugins or []:
            self.register(plugin)

    @property
    def plugins(self) -> list[BasePlugin]:
        return list(self._plugins)

    def register(self, plugin: BasePlugin):
        """Append a plugin. Names must be unique since stored records replay them."""
        if any(existing.name == plugin.name for existing in self._plugins):
            raise DuplicatePluginError(f"A plugin named {plugin.name!r} is already registered")
        self._plugins.append(plugin)
        logger.info(f"Registered plugin: {plugin.name}")

    def get(self, name: str) -> BasePlugin:
        for plugin in self._plugins:
            if plugin.name == name:
                return plugin
        raise PluginNotFoundError(f"No plugin found for source: {name}")

    def resolve(self, url: str) -> Optional[BasePlugin]:
        """First registered plugin that claims the URL, or None."""
        for plugin in self._plugins:
            try:
                if plugin.can_handle(url):
                    return plugin
            except Exception as e:
                logger.warning(f"[{plugin.name}] can_handle failed for {url}: {type(e).__name__}: {e}")
        logger.warning(f"No plugin can handle {url} — skipping")
        return None

    def fetch_all(self) -> list[Listing]:
        """Run every plugin's default discovery."""
        logger.info("Fetching listings from all plugins")
        all_listings = []
        for plugin in self._plugins:
            all_listings.extend(self._fetch(plugin, None))
        return all_listings

    def fetch_from_urls(self, urls: list[str]) -> list[Listing]:
        """Fetch each URL with the plugin that owns it, in the given order."""
        all_listings = []
        for url in urls:
            plugin = self.resolve(url)
            if plugin is None:
                continue
            all_listings.extend(self._fetch(plugin, url))
        return all_listings

    def _fetch(self, plugin: BasePlugin, url: Optional[str]) -> list[Listing]:
        try:
            listings = plugin.fetch_listings(url)
        except Exception as e:
            log_plugin_failure(logger, plugin.name, e)
            return []
        log_plugin_success(logger, plugin.name, len(listings))
        return listings

    def close(self):
        for plugin in self._plugins:
            try:
                plugin.close()
            except Exception as e:
                logger.warning(f"Failed to close plugin {plugin.name}: {e}")


def build_default_registry() -> PluginRegistry:
    """Registry with every built-in source, in priority order."""
    from plugins import InternshalaPlugin, NaukriPlugin

    return PluginRegistry([InternshalaPlugin(), NaukriPlugin()])
