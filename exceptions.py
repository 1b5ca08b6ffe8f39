"""
exceptions.py — Error types raised across the pipeline.
"""


class InternshipHunterError(Exception):
    """Base class for all application errors."""


class ConfigError(InternshipHunterError):
    pass


class StoreError(InternshipHunterError):
    """A snapshot could not be read or written."""


class NotFoundError(InternshipHunterError, LookupError):
    pass


class PluginNotFoundError(NotFoundError):
    pass


class PresetNotFoundError(NotFoundError):
    pass


class InternshipNotFoundError(NotFoundError):
    pass


class CompanyNotFoundError(NotFoundError):
    pass


class DuplicatePluginError(InternshipHunterError, ValueError):
    pass
