"""Listing source scrapers."""

from .fotocasa import FotocasaScraper
from .idealista import IdealistaScraper
from .pisos_com import PisosComScraper

__all__ = [
    "FotocasaScraper",
    "IdealistaScraper",
    "PisosComScraper",
]
