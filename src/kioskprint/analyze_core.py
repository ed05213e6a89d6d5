#!/usr/bin/env python3
"""
kioskprint
analyze_core.py - page count + color/mono verdict for uploaded documents

Drives a PDF render collaborator page by page, classifies every rendered
page with tools.color_tools and stops at the first color page: one color
page makes the whole document billed as color.

Exports:
  - PageAnalyzer(policy, params).analyze(document) -> PageAnalysisResult
  - analyze_pdf(source, policy=None, params=None) -> PageAnalysisResult
  - analyze_with_fallback(source, ...) -> (PageAnalysisResult, fallback_used)
  - count_document_pages(path) -> int
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from .defaults import ANALYSIS_DEFAULTS, COLOR_DEFAULTS, AnalysisParams, ColorPolicy
from .errors import DecodeError
from .tools.color_tools import ColorStats, Confidence, confidence_band, measure_color
from .tools import io_pages as IO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageAnalysisResult:
    page_count: int
    is_color: bool
    confidence: Confidence
    color_percentage: float = 0.0   # of the deciding page
    deciding_page: int = 1          # first color page, else the last page
    pages_inspected: int = 0
    page_stats: Tuple[Tuple[int, ColorStats], ...] = ()

    @property
    def color_type(self) -> str:
        return "COLOR" if self.is_color else "BLACK_WHITE"

    def to_dict(self) -> dict:
        return {
            "page_count": self.page_count,
            "color_type": self.color_type,
            "confidence": self.confidence.value,
            "analysis": {
                "is_color": self.is_color,
                "detection_confidence": self.confidence.value,
                "color_percentage": round(self.color_percentage, 4),
                "deciding_page": self.deciding_page,
                "pages_inspected": self.pages_inspected,
            },
        }


# Caller-side default when a document can't be analyzed: bill one color page.
FALLBACK_RESULT = PageAnalysisResult(
    page_count=1,
    is_color=True,
    confidence=Confidence.LOW,
    pages_inspected=0,
)


class PageAnalyzer:
    """
    Sequential when params.workers == 1: pages 1..N in order, stopping at the
    first color page. With more workers pages are rendered on a thread pool;
    a shared event lets workers skip pages that haven't started once a color
    page is found, so fewer than N renders happen on a best-effort basis.
    """

    def __init__(self, policy: Optional[ColorPolicy] = None, params: Optional[AnalysisParams] = None):
        self.policy = policy or COLOR_DEFAULTS
        self.params = params or ANALYSIS_DEFAULTS

    def analyze(self, document: IO.DocumentHandle) -> PageAnalysisResult:
        count = self._page_count(document)
        workers = int(self.params.workers)
        if workers > 1 and count > 1:
            classified = self._scan_parallel(document, count, min(workers, count))
        else:
            classified = self._scan_sequential(document, count)
        return self._build_result(count, classified)

    # ----------------------------
    # Page access
    # ----------------------------

    def _page_count(self, document: IO.DocumentHandle) -> int:
        try:
            count = int(document.page_count())
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"Could not read page count: {e}") from e
        if count < 1:
            raise DecodeError("Document has no pages")
        return count

    def _classify_page(self, document: IO.DocumentHandle, index: int) -> ColorStats:
        try:
            buffer = document.render_page(index, float(self.params.render_scale))
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(f"Could not render page {index}: {e}") from e
        stats = measure_color(buffer, self.policy)
        logger.debug(
            f"page {index}: {stats.colored}/{stats.considered} colored "
            f"({stats.percentage:.3f}%) -> {'color' if stats.is_color else 'mono'}"
        )
        return stats

    # ----------------------------
    # Scan strategies
    # ----------------------------

    def _scan_sequential(self, document: IO.DocumentHandle, count: int) -> Dict[int, ColorStats]:
        classified: Dict[int, ColorStats] = {}
        for index in range(1, count + 1):
            stats = self._classify_page(document, index)
            classified[index] = stats
            if stats.is_color:
                break
        return classified

    def _scan_parallel(self, document: IO.DocumentHandle, count: int, workers: int) -> Dict[int, ColorStats]:
        found = threading.Event()

        def work(index: int) -> Optional[ColorStats]:
            if found.is_set():
                return None
            stats = self._classify_page(document, index)
            if stats.is_color:
                found.set()
            return stats

        classified: Dict[int, ColorStats] = {}
        failures: Dict[int, BaseException] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="page") as pool:
            futures = {pool.submit(work, i): i for i in range(1, count + 1)}
            for fut in as_completed(futures):
                index = futures[fut]
                try:
                    stats = fut.result()
                except DecodeError as e:
                    failures[index] = e
                    continue
                if stats is not None:
                    classified[index] = stats

        # Match the sequential outcome: a failure only matters if the
        # sequential scan would have reached that page.
        color_pages = [i for i, s in classified.items() if s.is_color]
        stop = min(color_pages) if color_pages else count
        early = sorted(i for i in failures if i <= stop)
        if early:
            raise failures[early[0]]
        if failures:
            logger.debug(f"Ignoring render failures after color page {stop}: {sorted(failures)}")
        return classified

    # ----------------------------
    # Result
    # ----------------------------

    def _build_result(self, count: int, classified: Dict[int, ColorStats]) -> PageAnalysisResult:
        color_pages = sorted(i for i, s in classified.items() if s.is_color)
        deciding = color_pages[0] if color_pages else count
        stats = classified[deciding]
        confidence = confidence_band(
            stats.percentage,
            float(self.policy.percentage_threshold),
            low_ratio=float(self.params.low_ratio),
            medium_ratio=float(self.params.medium_ratio),
        )
        result = PageAnalysisResult(
            page_count=count,
            is_color=bool(color_pages),
            confidence=confidence,
            color_percentage=stats.percentage,
            deciding_page=deciding,
            pages_inspected=len(classified),
            page_stats=tuple(sorted(classified.items())),
        )
        logger.info(
            f"Analyzed {count} page(s): {result.color_type} "
            f"(page {deciding}, {stats.percentage:.3f}%, {confidence.value} confidence, "
            f"{result.pages_inspected} rendered)"
        )
        return result


def analyze_pdf(
    source: IO.PdfSource,
    policy: Optional[ColorPolicy] = None,
    params: Optional[AnalysisParams] = None,
) -> PageAnalysisResult:
    """Open a PDF (path or bytes), analyze it and close it."""
    params = params or ANALYSIS_DEFAULTS
    doc = IO.open_pdf(source, renderer=params.renderer)
    try:
        return PageAnalyzer(policy, params).analyze(doc)
    finally:
        doc.close()


def analyze_with_fallback(
    source: IO.PdfSource,
    policy: Optional[ColorPolicy] = None,
    params: Optional[AnalysisParams] = None,
) -> Tuple[PageAnalysisResult, bool]:
    """
    Kiosk ordering policy on top of analyze_pdf: an undecodable document is
    billed as one color page. Returns (result, fallback_used).
    """
    try:
        return analyze_pdf(source, policy, params), False
    except DecodeError as e:
        logger.warning(f"Document analysis failed, using 1 page / color: {e}")
        return FALLBACK_RESULT, True


# ----------------------------
# Page counting for uploads
# ----------------------------

SUPPORTED_DOCUMENT_TYPES = {
    "application/pdf": (".pdf",),
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": (".docx",),
    "application/msword": (".doc",),
}


def count_document_pages(path: Union[str, Path], renderer: str = "auto") -> int:
    """
    Page count for an uploaded document. PDFs are opened and counted exactly;
    Word files can't be rendered here, so their count is estimated from file
    size. Anything else counts as one page.
    """
    p = Path(path).expanduser()
    suffix = p.suffix.lower()
    if suffix == ".pdf":
        doc = IO.open_pdf(p, renderer=renderer)
        try:
            return doc.page_count()
        finally:
            doc.close()
    if suffix == ".docx":
        pages = IO.estimate_pages_from_size(p.stat().st_size, IO.DOCX_BYTES_PER_PAGE)
        logger.warning(f"DOCX page count is estimated: {pages} page(s)")
        return pages
    if suffix == ".doc":
        pages = IO.estimate_pages_from_size(p.stat().st_size, IO.DOC_BYTES_PER_PAGE)
        logger.warning(f"DOC page count is estimated: {pages} page(s)")
        return pages
    logger.warning(f"Unsupported file type for page counting: {suffix or p.name}; assuming 1 page")
    return 1
