from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn

from .errors import ExtractionError, failure_kind
from .extractors.base import OrderExtractor
from .models import NoteOutcome, RunSummary
from .services.note_reader import NoteReader
from .services.submitter import OrderSubmitter

logger = logging.getLogger(__name__)


class ExtractionPipeline:
    """Reads notes, extracts an order from each, and submits it downstream.

    Notes are processed one at a time. A failure on one note is recorded in
    the run summary and does not stop the rest of the run, including
    failures outside the package's error hierarchy.
    """

    def __init__(
        self,
        extractor: OrderExtractor,
        reader: NoteReader,
        submitter: Optional[OrderSubmitter] = None,
        *,
        show_progress: bool = False,
    ) -> None:
        self.extractor = extractor
        self.reader = reader
        self.submitter = submitter
        self.show_progress = show_progress

    async def process_note(self, path: Path) -> NoteOutcome:
        logger.info("Processing %s", path.name)
        try:
            note_text = self.reader.read_note(path)
            order = await self.extractor.extract(note_text)
            logger.info("Extracted DME: %s", order.device)
            if self.submitter is not None:
                await self.submitter.submit(order)
        except ExtractionError as e:
            kind = failure_kind(e)
            logger.error("Error processing %s (%s, strategy=%s): %s", path.name, kind, self.extractor.name, e)
            return NoteOutcome(note=path.name, success=False, error=str(e), failure_kind=kind)
        except Exception as e:
            logger.exception("Unexpected error processing %s (strategy=%s)", path.name, self.extractor.name)
            return NoteOutcome(note=path.name, success=False, error=str(e), failure_kind=failure_kind(e))

        return NoteOutcome(note=path.name, success=True, device=order.device)

    async def run(self, folder: Path | str) -> RunSummary:
        summary = RunSummary(strategy=self.extractor.name)
        notes: List[Path] = self.reader.list_notes(folder)
        if not notes:
            logger.warning("No notes matching %s found in %s", self.reader.pattern, folder)
            summary.completed_at = datetime.now()
            return summary

        logger.info("Found %d note file(s) to process", len(notes))

        if self.show_progress:
            progress = Progress(
                SpinnerColumn(),
                TextColumn("{task.description}"),
                BarColumn(),
                TextColumn("{task.completed}/{task.total}"),
                TimeElapsedColumn(),
            )
            with progress:
                task = progress.add_task("Notes", total=len(notes))
                for path in notes:
                    summary.outcomes.append(await self.process_note(path))
                    progress.update(task, advance=1)
        else:
            for path in notes:
                summary.outcomes.append(await self.process_note(path))

        summary.completed_at = datetime.now()
        logger.info(
            "Processing complete. Success: %d, Failures: %d",
            summary.succeeded,
            summary.failed,
        )
        return summary
