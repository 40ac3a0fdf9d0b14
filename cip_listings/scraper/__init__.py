"""
Web scraping components for the CIP listings tool.

This package contains all scraping-related functionality including:
- HTTP fetching of the cip-paris.fr feeds and cinema pages
- Extraction of cinemas, films and seances from those pages
- Assembly of a complete snapshot
"""

from cip_listings.scraper.cip_scraper import CipScraper
from cip_listings.scraper.http_client import HttpClient

__all__ = ["CipScraper", "HttpClient"]
