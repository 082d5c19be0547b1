"""Autolink proxy: resolve links through a site's internal API from a real browser tab."""

__version__ = "0.1.0"
