"""Extraction-type inference from a caller-supplied schema.

:func:`classify` maps an optional schema onto one of the fixed extraction
profiles so the prompt composer can pick a specialised instruction template.

Extraction types
----------------
``"auto"``
    No schema, or nothing recognisable in it.  The model produces a generic
    structured summary.

``"product"``, ``"article"``, ``"contact"``, ``"event"``, ``"job"``,
``"recipe"``, ``"review"``
    Selected by keyword presence in the lowercased JSON form of the schema.

The rules are evaluated in a fixed order and the first match wins.  The
keyword sets overlap (``"rating"`` shows up in product schemas as well as
review schemas, a job's salary may be described as a "price"), so the order
is part of the observable behaviour and must not be rearranged.
"""

import json
from typing import Any, Literal, Mapping, NamedTuple, Optional, Tuple, get_args

ExtractionType = Literal["auto", "article", "product", "contact", "event", "job", "recipe", "review"]

EXTRACTION_TYPES: Tuple[str, ...] = get_args(ExtractionType)


class _Rule(NamedTuple):
    extraction_type: ExtractionType
    # Must be present (if set) in addition to one of ``any_of``
    required: Optional[str]
    any_of: Tuple[str, ...]


_RULES: Tuple[_Rule, ...] = (
    _Rule("product", None, ("price", "sku", "availability")),
    _Rule("article", "author", ("publishdate", "content", "article")),
    _Rule("contact", None, ("email", "phone", "linkedin")),
    _Rule("event", None, ("startdate", "enddate", "venue", "registration")),
    _Rule("job", None, ("salary", "requirements", "employmenttype")),
    _Rule("recipe", None, ("ingredients", "cooktime", "servings")),
    _Rule("review", "rating", ("review", "pros")),
)


def _schema_text(schema: Mapping[str, Any]) -> str:
    try:
        text = json.dumps(schema, default=str)
    except (TypeError, ValueError):
        # Non-string keys or circular references
        text = str(schema)
    return text.lower()


def classify(schema: Optional[Mapping[str, Any]] = None) -> ExtractionType:
    """Return the extraction type that best matches *schema*.

    Always returns one of :data:`EXTRACTION_TYPES`; ``"auto"`` when *schema*
    is empty, missing, or matches no rule.
    """
    if not schema:
        return "auto"

    text = _schema_text(schema)
    for rule in _RULES:
        if rule.required is not None and rule.required not in text:
            continue
        if any(keyword in text for keyword in rule.any_of):
            return rule.extraction_type

    return "auto"
