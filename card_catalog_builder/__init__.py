"""Card Catalog Builder - Discover and enrich a catalog of turn-based card games."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("card-catalog-builder")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0"
