"""Search query variants for competitor discovery."""

from __future__ import annotations

from competitor_intel.models import CompanyProfile


def generate_queries(profile: CompanyProfile) -> list[dict]:
    """Generate the three competitor-discovery queries for a company.

    Two are name-based, one is product/industry-based so that competitors
    who are never compared to the company by name still surface.
    Returns list of dicts with 'query' and 'purpose' keys.
    """
    queries = [
        {
            "query": f"{profile.name} alternatives",
            "purpose": "alternatives",
        },
        {
            "query": f"{profile.name} vs competitors",
            "purpose": "versus",
        },
        {
            "query": f"{profile.product} competitors {profile.industry}".strip(),
            "purpose": "product_industry",
        },
    ]
    return queries
