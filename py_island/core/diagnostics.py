"""
Diagnostics collected during a generation pass.

Stages that skip work (empty inputs, degenerate geometry, exhausted
retries) record why here instead of failing the pass.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List

import structlog

logger = structlog.get_logger()

INPUT_EMPTY = "input_empty"
DEGENERATE_GEOMETRY = "degenerate_geometry"
EXHAUSTED_RETRY = "exhausted_retry"


@dataclass
class DiagnosticEntry:
    stage: str
    category: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GenerationDiagnostics:
    """Skipped work of one pass, grouped by stage and category."""
    entries: List[DiagnosticEntry] = field(default_factory=list)

    def record(self, stage: str, category: str, message: str, **context) -> DiagnosticEntry:
        entry = DiagnosticEntry(stage=stage, category=category, message=message, context=context)
        self.entries.append(entry)
        logger.warning(message, stage=stage, category=category, **context)
        return entry

    def for_stage(self, stage: str) -> List[DiagnosticEntry]:
        return [e for e in self.entries if e.stage == stage]

    def counts(self) -> Dict[str, int]:
        """Number of entries per category."""
        return dict(Counter(e.category for e in self.entries))

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counts": self.counts(),
            "entries": [
                {"stage": e.stage, "category": e.category, "message": e.message, "context": e.context}
                for e in self.entries
            ],
        }
