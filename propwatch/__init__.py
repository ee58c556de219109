"""propwatch: Spanish property listing scraper and change tracker."""

__version__ = "0.1.0"
