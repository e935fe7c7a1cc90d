"""
Annotation-driven regeneration.

Users mark up a previous response with requested changes, grouped by the
schema (or section) they apply to. Regeneration resubmits the previous
prompt with a modification block listing those changes and the previous
response.
"""

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .exceptions import PreconditionError
from .models import GenerationRequest

logger = logging.getLogger(__name__)

DIVIDER = "\n\n---\n\n"


@dataclass(frozen=True)
class AnnotationItem:
    """A single requested change."""

    id: str
    label: str


@dataclass
class Annotation:
    """Requested changes for one schema of the previous response."""

    schema_id: str
    schema_label: str
    items: List[AnnotationItem] = field(default_factory=list)
    schema_icon: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Annotation":
        """Build from the wire form ({schemaId, schemaLabel, annotations: [...]})."""
        raw_items = data.get("annotations", data.get("items")) or []
        return cls(
            schema_id=str(data.get("schemaId", data.get("schema_id", ""))),
            schema_label=data.get("schemaLabel", data.get("schema_label", "")),
            items=[AnnotationItem(id=str(i.get("id", "")), label=i.get("label", "")) for i in raw_items],
            schema_icon=data.get("schemaIcon", data.get("schema_icon")),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "schemaId": self.schema_id,
            "schemaLabel": self.schema_label,
            "annotations": [{"id": i.id, "label": i.label} for i in self.items],
        }
        if self.schema_icon:
            data["schemaIcon"] = self.schema_icon
        return data


class AnnotationSet:
    """
    Annotations currently attached to a session's response, keyed by schema id.

    Cleared when a new response arrives, unless that response came from
    applying these annotations.
    """

    def __init__(self, annotations: Optional[Iterable[Annotation]] = None):
        self._by_schema: Dict[str, Annotation] = {}
        for annotation in annotations or []:
            self.set(annotation)

    def set(self, annotation: Annotation) -> None:
        """Replace the annotation for its schema; an annotation without items removes it."""
        if annotation.items:
            self._by_schema[annotation.schema_id] = annotation
        else:
            self._by_schema.pop(annotation.schema_id, None)

    def remove(self, schema_id: str) -> None:
        self._by_schema.pop(schema_id, None)

    def clear(self) -> None:
        self._by_schema.clear()

    def replace_all(self, annotations: Iterable[Annotation]) -> None:
        self.clear()
        for annotation in annotations:
            self.set(annotation)

    def __iter__(self):
        return iter(list(self._by_schema.values()))

    def __len__(self) -> int:
        return len(self._by_schema)

    @property
    def item_count(self) -> int:
        return sum(len(a.items) for a in self._by_schema.values())

    def to_list(self) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self._by_schema.values()]


def _looks_like_json(text: str) -> bool:
    stripped = text.strip()
    if not stripped or stripped[0] not in "[{":
        return False
    try:
        json.loads(stripped)
    except json.JSONDecodeError:
        return False
    return True


def build_modification_block(prior_response: str, annotations: Iterable[Annotation]) -> str:
    """
    Render the modification request appended to the previous prompt.

    Args:
        prior_response: The response being modified
        annotations: Requested changes, grouped by schema

    Returns:
        The block, starting with a divider
    """
    sections = []
    for annotation in annotations:
        if not annotation.items:
            continue
        changes = "\n".join(f"- {item.label}" for item in annotation.items)
        sections.append(f"{annotation.schema_label}\n\n{changes}")

    fence = "json" if _looks_like_json(prior_response) else "text"
    return (
        f"{DIVIDER}## MODIFY EXISTING SCHEMA(S)\n\n"
        "Please update the following schema(s) based on the requested modifications. "
        "Apply ONLY the specified changes while keeping everything else exactly the same.\n\n"
        "Requested Modifications:\n\n"
        + "\n\n".join(sections)
        + f"\n\nPrevious Schema(s):\n```{fence}\n{prior_response}\n```"
        + DIVIDER
        + "IMPORTANT: Apply these modifications precisely while preserving all other aspects "
        "of the schema(s). Output the complete updated schema(s) in the same format "
        "(single object or array)."
    )


def build_regeneration_request(
    prior_response: Optional[str],
    prior_prompt: Optional[str],
    annotations: Iterable[Annotation],
    *,
    agent_id: str,
    body: Optional[Mapping[str, Any]] = None,
    extra_body: Optional[Mapping[str, Any]] = None,
    reference_id: Optional[str] = None,
    template: Optional[GenerationRequest] = None,
) -> GenerationRequest:
    """
    Build the request that regenerates a response with annotations applied.

    Args:
        prior_response: Response being modified
        prior_prompt: Prompt that produced it
        annotations: Requested changes
        agent_id: Agent to run
        body: Agent parameters
        extra_body: Extra agent parameters
        reference_id: Reference recorded in history
        template: Optional previous request whose other settings are kept

    Returns:
        A GenerationRequest whose prompt is the previous prompt followed by
        the modification block

    Raises:
        PreconditionError: If there is no previous response or prompt, or no
            annotation carries an item
    """
    annotations = [a for a in annotations if a.items]
    if not prior_response or not prior_response.strip():
        raise PreconditionError("Cannot apply annotations: there is no previous response")
    if not prior_prompt or not prior_prompt.strip():
        raise PreconditionError("Cannot apply annotations: there is no previous prompt")
    if not annotations:
        raise PreconditionError("Cannot apply annotations: no changes were requested")

    user_prompt = prior_prompt.strip() + build_modification_block(prior_response, annotations)
    logger.info(
        f"Regeneration request built for agent {agent_id} with "
        f"{sum(len(a.items) for a in annotations)} change(s)"
    )

    fields: Dict[str, Any] = {
        "agent_id": agent_id,
        "user_prompt": user_prompt,
        "previous_response": prior_response,
        "previous_prompt": prior_prompt,
        "annotations": [a.to_dict() for a in annotations],
    }
    if reference_id is not None:
        fields["reference_id"] = reference_id
    if body is not None:
        fields["body"] = dict(body)
    if extra_body is not None:
        fields["extra_body"] = dict(extra_body)

    if template is not None:
        return replace(template, **fields)
    return GenerationRequest(**fields)
