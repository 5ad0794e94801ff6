"""Locate report sections by metric name."""

import logging
from typing import Tuple, Union

from xero_agent.models.failures import SectionNotFound
from xero_agent.models.report import Report, SectionRow

logger = logging.getLogger(__name__)

# Queries that select every section instead of filtering
ALL_SECTIONS = frozenset({"all", "*"})


def normalize_title(text: str) -> str:
    return text.strip().lower()


def resolve_sections(
    report: Report,
    query: str,
) -> Union[Tuple[SectionRow, ...], SectionNotFound]:
    """Find the top-level sections matching ``query``.

    Matching is case-insensitive. Exact title matches win; otherwise a
    section matches when its title contains the query or the query contains
    its title, so both "Expenses" -> "Operating Expenses" and
    "Total Income" -> "Income" resolve.

    Args:
        report: Parsed report
        query: Metric or section name, or "ALL" / "*" for every section

    Returns:
        All matching sections in report order (possibly several), or
        SectionNotFound listing the titles that exist.
    """
    sections = report.sections
    wanted = normalize_title(query or "")

    if wanted in ALL_SECTIONS:
        return tuple(sections)

    candidates = []
    if wanted:
        exact = tuple(s for s in sections if normalize_title(s.title) == wanted)
        if exact:
            return exact

        for section in sections:
            title = normalize_title(section.title)
            if title and (wanted in title or title in wanted):
                candidates.append(section)

    if not candidates:
        logger.info(
            f"No section matching '{query}' in report '{report.name}' "
            f"({len(sections)} sections)"
        )
        return SectionNotFound(
            query=query or "",
            available_sections=tuple(report.section_titles),
        )

    return tuple(candidates)
