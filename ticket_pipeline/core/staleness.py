"""
Staleness detection for automated ticket analysis.

An analysis is an automated annotation. It goes stale when anything newer
lands on the ticket after it was written:

- a human annotation newer than the latest automated one, or
- an external comment newer than the analysis by more than the tolerance.

The tolerance absorbs clock skew between the annotation store and the issue
tracker. It defaults to 1000 ms and is configured via
TP_STALENESS_TOLERANCE_MS.

Everything here is pure: no I/O, no clock reads, no hidden state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Optional

from ..enums import AnalysisStatus
from ..schemas import Annotation, ExternalComment

DEFAULT_TOLERANCE_MS = 1000

ANALYSIS_MARKER = "1. UNDERSTANDING CONFIRMATION"

_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")
_HEADER_SPACING = re.compile(r"^(#{1,6})\s*", re.MULTILINE)


@dataclass(frozen=True)
class StalenessReport:
    """Classification of a ticket's analysis freshness.

    Attributes:
        status: none, pending or complete
        latest_analysis: Newest automated annotation, if any
        newer_comment_count: External comments that landed after the analysis
    """

    status: AnalysisStatus
    latest_analysis: Optional[Annotation] = None
    newer_comment_count: int = 0

    @property
    def has_analysis(self) -> bool:
        return self.status != AnalysisStatus.NONE


def detect_staleness(
    annotations: Iterable[Annotation],
    comments: Iterable[ExternalComment] = (),
    tolerance_ms: int = DEFAULT_TOLERANCE_MS,
) -> StalenessReport:
    """
    Classify the freshness of the latest automated analysis.

    Args:
        annotations: All annotations on the ticket, in any order
        comments: External comments on the ticket, in any order
        tolerance_ms: Allowed clock skew for external comments

    Returns:
        StalenessReport with status none, pending or complete
    """
    ordered = sorted(annotations, key=lambda a: a.created_at, reverse=True)
    if not ordered:
        return StalenessReport(status=AnalysisStatus.NONE)

    latest_analysis = next((a for a in ordered if a.is_automated), None)
    if latest_analysis is None:
        return StalenessReport(status=AnalysisStatus.NONE)

    if ordered[0] is not latest_analysis:
        return StalenessReport(
            status=AnalysisStatus.PENDING, latest_analysis=latest_analysis
        )

    cutoff = latest_analysis.created_at + timedelta(milliseconds=tolerance_ms)
    newer = sum(1 for comment in comments if comment.created_at > cutoff)
    if newer:
        return StalenessReport(
            status=AnalysisStatus.PENDING,
            latest_analysis=latest_analysis,
            newer_comment_count=newer,
        )

    return StalenessReport(status=AnalysisStatus.COMPLETE, latest_analysis=latest_analysis)


def extract_analysis_content(content: str) -> str:
    """Drop any preamble before the analysis proper."""
    index = content.find(ANALYSIS_MARKER)
    if index == -1:
        return content
    return content[index:]


def format_analysis_for_display(content: str) -> str:
    """
    Tidy an analysis for rendering as markdown.

    Strips the preamble, collapses runs of blank lines and normalizes
    header spacing ("##Title" -> "## Title").
    """
    text = extract_analysis_content(content)
    text = _EXCESS_BLANK_LINES.sub("\n\n", text)
    text = _HEADER_SPACING.sub(r"\1 ", text)
    return text.strip()
