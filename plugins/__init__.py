from plugins.base import BasePlugin, BrowserPlugin, StaticPagePlugin
from plugins.internshala import InternshalaPlugin
from plugins.naukri import NaukriPlugin

__all__ = [
    "BasePlugin",
    "BrowserPlugin",
    "StaticPagePlugin",
    "InternshalaPlugin",
    "NaukriPlugin",
]
