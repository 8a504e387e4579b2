"""Concrete build stages.

Each module exports `STAGE`, a `StageRef` whose builder receives
`BuildInputs` and returns a `StageDescriptor`.
"""
