"""Competitor candidate filtering: canonical URLs, exclusions, deduplication."""

from __future__ import annotations

import logging
import re
from urllib.parse import urlparse

from competitor_intel.models import CompetitorAnalysis, CompetitorCandidate

logger = logging.getLogger(__name__)

# Review sites, aggregators, directories, social networks and news outlets.
# A ranked "competitor" on one of these is a search artefact, not a company.
NON_COMPETITOR_DOMAINS: frozenset[str] = frozenset({
    # review / comparison aggregators
    "g2.com", "capterra.com", "getapp.com", "softwareadvice.com",
    "trustradius.com", "trustpilot.com", "alternativeto.net", "saasworthy.com",
    "producthunt.com", "sourceforge.net", "slashdot.org", "stackshare.io",
    "gartner.com", "peerspot.com", "financesonline.com", "softwaresuggest.com",
    "selecthub.com", "goodfirms.co", "clutch.co", "saashub.com",
    # company databases
    "crunchbase.com", "tracxn.com", "cbinsights.com", "pitchbook.com",
    "owler.com", "zoominfo.com",
    # social / community
    "linkedin.com", "twitter.com", "x.com", "facebook.com", "instagram.com",
    "youtube.com", "reddit.com", "quora.com", "medium.com", "substack.com",
    "wikipedia.org", "github.com",
    # news / press
    "techcrunch.com", "forbes.com", "businessinsider.com", "venturebeat.com",
    "theverge.com", "wired.com", "reuters.com", "bloomberg.com", "cnbc.com",
    "prnewswire.com", "businesswire.com", "globenewswire.com",
    # jobs
    "glassdoor.com", "indeed.com",
})


def filter_candidates(
    candidates: list[CompetitorCandidate],
    origin_name: str,
    origin_url: str,
    max_competitors: int = 5,
) -> list[CompetitorCandidate]:
    """Apply ranking-time filtering to the ranked list from the LLM.

    Canonicalises each URL to its homepage, drops the origin company (by
    name or domain) and non-competitor domains, removes duplicate names and
    domains (first occurrence wins) and caps the list. The engine's ordering
    is otherwise preserved.
    """
    origin_slug = _clean_company_name(origin_name)
    origin_domain = _extract_domain(canonical_url(origin_url))

    seen_names: set[str] = set()
    seen_domains: set[str] = set()
    kept: list[CompetitorCandidate] = []

    for candidate in candidates:
        if len(kept) >= max_competitors:
            break
        url = canonical_url(candidate.url)
        domain = _extract_domain(url)
        slug = _clean_company_name(candidate.name)

        if not domain or not slug:
            logger.debug("Dropping candidate with unusable name/url: %s", candidate)
            continue
        if slug == origin_slug or _same_site(domain, origin_domain):
            logger.info("Dropping origin company from competitors: %s", candidate.name)
            continue
        if is_non_competitor_domain(domain):
            logger.info("Dropping non-competitor source: %s (%s)", candidate.name, domain)
            continue
        site = _strip_www(domain)
        if slug in seen_names or site in seen_domains:
            logger.debug("Dropping duplicate competitor: %s", candidate.name)
            continue

        seen_names.add(slug)
        seen_domains.add(site)
        kept.append(CompetitorCandidate(name=candidate.name, url=url))

    return kept


def reconcile_analyses(
    analyses: list[CompetitorAnalysis],
    scraped: list[CompetitorCandidate],
) -> list[CompetitorAnalysis]:
    """Pair each analysis with exactly one scraped candidate.

    Matches on cleaned name first, then on domain. Analyses of companies
    that were never scraped are dropped, as are repeats of an already
    matched candidate. Matched entries take the candidate's name and URL.
    """
    by_slug = {_clean_company_name(c.name): c for c in scraped}
    by_domain = {_strip_www(_extract_domain(c.url)): c for c in scraped}

    used: set[tuple[str, str]] = set()
    reconciled = []
    for analysis in analyses:
        match = by_slug.get(_clean_company_name(analysis.name))
        if match is None and analysis.url:
            match = by_domain.get(_strip_www(_extract_domain(canonical_url(analysis.url))))
        if match is None:
            logger.warning("Dropping analysis for unscraped competitor: %s", analysis.name)
            continue
        key = (match.name, match.url)
        if key in used:
            logger.debug("Dropping repeated analysis for %s", match.name)
            continue
        used.add(key)
        reconciled.append(analysis.model_copy(update={"name": match.name, "url": match.url}))
    return reconciled


def canonical_url(url: str) -> str:
    """Reduce a URL to scheme://host, adding https:// when no scheme is given.

    e.g. "www.acme.io/features?ref=g2" -> "https://www.acme.io"
    """
    url = url.strip()
    if not url:
        return ""
    if "://" not in url:
        url = f"https://{url}"
    parsed = urlparse(url)
    if not parsed.netloc:
        return ""
    scheme = parsed.scheme if parsed.scheme in ("http", "https") else "https"
    return f"{scheme}://{parsed.netloc.lower()}"


def is_non_competitor_domain(domain: str) -> bool:
    domain = _strip_www(domain)
    return any(domain == d or domain.endswith(f".{d}") for d in NON_COMPETITOR_DOMAINS)


def _same_site(domain: str, origin_domain: str) -> bool:
    if not origin_domain:
        return False
    domain, origin_domain = _strip_www(domain), _strip_www(origin_domain)
    return (
        domain == origin_domain
        or domain.endswith(f".{origin_domain}")
        or origin_domain.endswith(f".{domain}")
    )


def _clean_company_name(name: str) -> str:
    """Clean company name to a slug for comparison.

    e.g. "Widget Co." -> "widgetco"
    """
    return re.sub(r"[^a-z0-9]", "", name.lower())


def _strip_www(domain: str) -> str:
    return domain[4:] if domain.startswith("www.") else domain


def _extract_domain(url: str) -> str:
    """Extract the host (no port) from a URL."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
