class HealingError(RuntimeError):
    """Base class for selector healing failures."""


class SelectorValidationError(HealingError):
    """Raised when a suggestion provider returns an unusable selector."""


class ProviderError(HealingError):
    """Raised when a suggestion provider request cannot be completed."""


class ConfigLoadError(HealingError):
    """Raised when the healing configuration cannot be read or validated."""


class CachePersistenceError(HealingError):
    """Raised when the healed selector store cannot be read or written."""
