class CartEngineError(Exception):
    """Base class for errors raised by the cart engine."""


class ConfigError(CartEngineError):
    """Pricing policy could not be read or holds invalid values."""


class CatalogError(CartEngineError):
    """The catalog collaborator failed to return a product page."""


class PersistenceError(CartEngineError):
    """The persistence collaborator failed to load or save the cart."""
