"""Follow-up questions about a stored report."""

from __future__ import annotations

import logging

from competitor_intel.analysis.prompts import build_chat_system
from competitor_intel.errors import CompetitorIntelError
from competitor_intel.models import Report

logger = logging.getLogger(__name__)


async def answer_question(report: Report, question: str, llm) -> str:
    """Answer ``question`` using the report as system context.

    ``llm`` is anything with ``async complete(prompt, system=None) -> str``.
    """
    question = question.strip()
    if not question:
        raise CompetitorIntelError("question is empty")

    logger.debug("Answering question about report %s: %s", report.id, question[:80])
    try:
        answer = await llm.complete(question, system=build_chat_system(report))
    except CompetitorIntelError:
        raise
    except Exception as e:
        raise CompetitorIntelError(f"could not answer question: {e}") from e
    return answer.strip() or "No answer returned."
