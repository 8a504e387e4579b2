"""`assetkit` invariants and boundaries.

This module exists to make repository-wide refactors and boundary tests explicit.

Generic invariants:

1) `assetkit` must not import `asset_pipeline.*`.
2) `assetkit` provides reusable engine primitives (change filter, error boundary,
   pipeline composer, watch dispatcher) and a stage authoring kit
   (StageRef/StageRegistry/StageOptions/OptionReader).
3) `assetkit` does not define project conventions like:
   - which directories hold sources and outputs
   - which external tools compile stylesheets or bundle scripts
   - how failures are shown to a developer or how browsers are reloaded

Project code injects these through stage builders, error sinks and watch
binding post-actions implemented outside this package.
"""

from __future__ import annotations
