"""Project-specific framework utilities.

Config parsing and the inputs handed to stage builders. Concrete stages live
in `asset_pipeline.stages`; reusable engine primitives live in `assetkit`.
"""
