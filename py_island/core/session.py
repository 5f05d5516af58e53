"""
Host-side regeneration session.

A session holds the latest bundle and runs at most one generation pass at
a time. A failed pass leaves the previous bundle in place.
"""

import threading
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import structlog

from ..config.island_config import IslandConfig
from .contours import FoliagePrototype, RockPrototype
from .pipeline import Checkpoint, IslandBundle, generate_island

logger = structlog.get_logger()


class GenerationInProgressError(RuntimeError):
    """Raised when a pass is requested while another one is running."""


@dataclass
class GenerationOutcome:
    """Result of one regeneration request."""
    success: bool
    bundle: Optional[IslandBundle] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0


class IslandSession:
    """Single-flight wrapper around generate_island()."""

    def __init__(self):
        self._lock = threading.Lock()
        self._latest: Optional[IslandBundle] = None

    @property
    def latest(self) -> Optional[IslandBundle]:
        return self._latest

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def regenerate(self, config: IslandConfig, rock_prototypes: Sequence[RockPrototype],
                   foliage_prototypes: Sequence[Union[FoliagePrototype, str]] = (),
                   seed: Optional[Union[str, int]] = None,
                   checkpoint: Optional[Checkpoint] = None) -> GenerationOutcome:
        """
        Run a pass and keep its bundle on success.

        Raises:
            GenerationInProgressError: another pass is running
        """
        if not self._lock.acquire(blocking=False):
            raise GenerationInProgressError("A generation pass is already running")

        started = time.perf_counter()
        try:
            bundle = generate_island(config, rock_prototypes, foliage_prototypes,
                                     seed=seed, checkpoint=checkpoint)
        except Exception as e:
            logger.exception("Generation failed", seed=seed, error=str(e))
            return GenerationOutcome(success=False, bundle=self._latest, error=str(e),
                                     duration_seconds=time.perf_counter() - started)
        finally:
            self._lock.release()

        self._latest = bundle
        return GenerationOutcome(success=True, bundle=bundle,
                                 duration_seconds=time.perf_counter() - started)

    def clear(self):
        self._latest = None
