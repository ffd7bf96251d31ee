"""Playwright-driven access to the SPY web application."""
