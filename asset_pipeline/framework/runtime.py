from __future__ import annotations

import logging
from dataclasses import dataclass, field

from asset_pipeline.framework.config import ProjectPaths


@dataclass(frozen=True)
class BuildInputs:
    """What every stage builder gets: where sources and outputs live, and who to log to."""

    paths: ProjectPaths
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("asset_pipeline"))
