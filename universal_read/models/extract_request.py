from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from universal_read.services.classifier import ExtractionType


class ExtractRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: HttpUrl
    target_schema: Optional[Dict[str, Any]] = Field(
        default=None,
        alias="schema",
        description="JSON schema (or example object) describing the data to extract.",
        examples=[{"title": "string", "summary": "string"}],
    )
    wait_for: Optional[str] = Field(
        default=None,
        alias="waitFor",
        description="CSS selector to wait for. Accepted for compatibility; pages are not rendered.",
    )
    extraction_type: Optional[ExtractionType] = Field(
        default=None,
        alias="extractionType",
        description="Force an extraction type instead of inferring it from the schema.",
    )
