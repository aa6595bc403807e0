"""
PDF Link Service - HTML to PDF conversion with short-lived download links.

Renders HTML with Playwright/Chromium, keeps the PDFs on local disk for a
fixed time-to-live and serves them under /pdfs.
"""

__version__ = "0.1.0"
