from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer

from universal_read.services.classifier import ExtractionType


class ExtractMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    title: str
    model: str
    tokens_used: Optional[int] = Field(default=None, alias="tokensUsed")
    extraction_type: ExtractionType = Field(alias="extractionType")
    processing_time_ms: int = Field(alias="processingTimeMs")

    @model_serializer(mode="wrap")
    def omit_unknown_token_count(self, handler: SerializerFunctionWrapHandler):
        # The model does not always report usage; the key is left out rather than sent as null.
        data = handler(self)
        if self.tokens_used is None:
            data.pop("tokensUsed", None)
            data.pop("tokens_used", None)
        return data


class ExtractResponse(BaseModel):
    success: Literal[True] = True
    data: Dict[str, Any]
    metadata: ExtractMetadata
