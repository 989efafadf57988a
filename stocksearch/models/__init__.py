"""
Data Models Package
Domain entities shared by the search engine and the API.
"""

from .listing import Listing, compose_description, format_dimensions

__all__ = [
    "Listing",
    "compose_description",
    "format_dimensions",
]
