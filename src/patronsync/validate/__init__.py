"""Field validation and transforms.

Main Components
---------------
- FieldValidator: column validation of one CSV row
- check_rule: rule-string validation (``s:20``, ``d:YYYYMMDD``, ...)
- TRANSFORM_REGISTRY: named transforms used by the payload builder
"""

from patronsync.validate.columns import COLUMN_VALIDATORS
from patronsync.validate.rules import INVALID, check_rule, parse_date, parse_rule, parse_us_date
from patronsync.validate.transforms import (
    TRANSFORM_REGISTRY,
    TransformContext,
    age_in_years,
    resolve_transform,
)
from patronsync.validate.validator import FieldError, FieldValidator, RowValidation

__all__ = [
    "INVALID",
    "COLUMN_VALIDATORS",
    "check_rule",
    "parse_rule",
    "parse_date",
    "parse_us_date",
    "TRANSFORM_REGISTRY",
    "TransformContext",
    "age_in_years",
    "resolve_transform",
    "FieldError",
    "FieldValidator",
    "RowValidation",
]
