from marketview.catalog.resolver import CatalogResolver, CatalogUnavailableError, load_all

__all__ = ["CatalogResolver", "CatalogUnavailableError", "load_all"]
