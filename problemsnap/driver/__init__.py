"""Playwright drivers: CDP connection, scrolling, UI steps and pipelines."""
