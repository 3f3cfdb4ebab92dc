"""Document parser: download a linked PDF and extract its text with pypdf."""

from __future__ import annotations

import asyncio
import io
import logging
import re

import httpx
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from competitor_intel.scrape.http_scraper import browser_headers

logger = logging.getLogger(__name__)

PDF_LINK_RE = re.compile(r"https?://[^\s)\"'<>\]]+\.pdf", re.IGNORECASE)

# Skip whitepapers large enough to stall a run
_MAX_PDF_BYTES = 20 * 1024 * 1024


def find_pdf_links(*texts: str) -> list[str]:
    """Return PDF URLs found in the given texts, first occurrence order, no duplicates."""
    seen: dict[str, None] = {}
    for text in texts:
        for match in PDF_LINK_RE.findall(text or ""):
            seen.setdefault(match, None)
    return list(seen)


class PdfParser:
    """Best-effort PDF text extraction. Never raises; returns None on any failure."""

    def __init__(self, timeout: float = 30):
        self.timeout = timeout

    async def parse_pdf(self, url: str) -> str | None:
        try:
            data = await self._download(url)
        except httpx.HTTPError as e:
            logger.warning("PDF download failed for %s: %s", url[:80], e)
            return None
        if data is None:
            return None

        try:
            text = await asyncio.to_thread(_extract_text, data)
        except (PyPdfError, ValueError, OSError) as e:
            logger.warning("PDF parse failed for %s: %s", url[:80], e)
            return None
        return text or None

    async def _download(self, url: str) -> bytes | None:
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            response = await client.get(url, headers=browser_headers("application/pdf,*/*"))
            if response.status_code >= 400:
                logger.info("PDF %s returned HTTP %d", url[:80], response.status_code)
                return None
            if len(response.content) > _MAX_PDF_BYTES:
                logger.info("PDF %s too large (%d bytes), skipping", url[:80], len(response.content))
                return None
            return response.content


def _extract_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n\n".join(p.strip() for p in pages if p.strip())
