"""
Request/response schemas for the generation API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..annotations import Annotation
from ..models import GenerationRequest
from ..prompt.fields import FieldSpec


class AnnotationItemSchema(BaseModel):
    id: str
    label: str


class AnnotationSchema(BaseModel):
    """Requested changes for one schema of the previous response."""
    schema_id: str
    schema_label: str
    schema_icon: Optional[str] = None
    items: List[AnnotationItemSchema] = Field(default_factory=list)

    def to_annotation(self) -> Annotation:
        return Annotation.from_dict({
            "schemaId": self.schema_id,
            "schemaLabel": self.schema_label,
            "schemaIcon": self.schema_icon,
            "annotations": [item.model_dump() for item in self.items],
        })


class ComposeRequest(BaseModel):
    """Form fields and values to compose into a prompt."""
    form_fields: List[Dict[str, Any]] = Field(..., description="Schema field records")
    values: Dict[str, Any] = Field(default_factory=dict, description="Form values keyed by field name")
    language: Optional[str] = Field(None, description="Selected output language code")

    def field_specs(self) -> List[FieldSpec]:
        return [FieldSpec.from_dict(f) for f in self.form_fields]


class ComposeResponse(BaseModel):
    prompt: str
    body: Dict[str, Any] = Field(default_factory=dict)
    extra_body: Dict[str, Any] = Field(default_factory=dict)


class GenerateRequest(BaseModel):
    """Request to run a generation."""
    agent_id: str = Field(..., description="Agent to run")
    user_prompt: str = Field(..., description="Composed prompt")
    body: Dict[str, Any] = Field(default_factory=dict)
    extra_body: Dict[str, Any] = Field(default_factory=dict)
    image_type: Optional[str] = None
    previous_response: Optional[str] = None
    previous_prompt: Optional[str] = None
    reference_id: Optional[str] = None
    summarize_before_search_image: bool = True

    def to_request(self) -> GenerationRequest:
        return GenerationRequest(
            agent_id=self.agent_id,
            user_prompt=self.user_prompt,
            body=dict(self.body),
            extra_body=dict(self.extra_body),
            image_type=self.image_type,
            previous_response=self.previous_response,
            previous_prompt=self.previous_prompt,
            reference_id=self.reference_id,
            summarize_before_search_image=self.summarize_before_search_image,
        )


class RegenerateRequest(BaseModel):
    """Request to regenerate the previous response with annotations applied."""
    annotations: Optional[List[AnnotationSchema]] = Field(
        None,
        description="Replaces the session's annotations when given"
    )
    agent_id: Optional[str] = None


class AnnotationsUpdate(BaseModel):
    annotations: List[AnnotationSchema]


class OutcomeResponse(BaseModel):
    """A generation outcome as seen by the client."""
    session_id: str
    busy: bool
    applying_annotations: bool = False
    last_prompt_id: Optional[str] = None
    annotations: List[Dict[str, Any]] = Field(default_factory=list)
    outcome: Dict[str, Any]


class MessageResponse(BaseModel):
    """Response for a control operation."""
    success: bool
    message: Optional[str] = None
