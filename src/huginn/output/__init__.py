"""
Output formatters for huginn search results.

This package renders search responses as text, JSON or HTML.
"""

from .formatter import ResultFormatter

__all__ = ["ResultFormatter"]
