"""
Problem snapshot scraper.

This package drives an already-running Chromium over CDP to collect problem
lists per company and to save each problem page as a single MHTML file.
"""
