"""FHIR-shaped resource models the gateway understands.

Only ``DocumentReference`` carries the subject and custodian bindings the
pipeline transforms. Every other resource type is kept as an opaque
``OtherResource`` and passed through untouched.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter


class FhirModel(BaseModel):
    """Base: camelCase on the wire, unknown elements preserved."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Identifier(FhirModel):
    system: Optional[str] = None
    value: Optional[str] = None


class Reference(FhirModel):
    reference: Optional[str] = None
    identifier: Optional[Identifier] = None
    display: Optional[str] = None


class Meta(FhirModel):
    version_id: Optional[str] = Field(default=None, alias="versionId")
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")


class DocumentReference(FhirModel):
    resource_type: Literal["DocumentReference"] = Field(
        default="DocumentReference", alias="resourceType"
    )
    id: Optional[str] = None
    meta: Optional[Meta] = None
    status: Optional[str] = None
    subject: Optional[Reference] = None
    custodian: Optional[Reference] = None


class OtherResource(FhirModel):
    resource_type: str = Field(alias="resourceType")
    id: Optional[str] = None
    meta: Optional[Meta] = None


def _resource_kind(value: Any) -> str:
    if isinstance(value, dict):
        kind = value.get("resourceType")
    else:
        kind = getattr(value, "resource_type", None)
    return "document" if kind == "DocumentReference" else "other"


Resource = Annotated[
    Union[
        Annotated[DocumentReference, Tag("document")],
        Annotated[OtherResource, Tag("other")],
    ],
    Discriminator(_resource_kind),
]

resource_adapter: TypeAdapter[Resource] = TypeAdapter(Resource)


def parse_resource(payload: dict[str, Any]) -> Union[DocumentReference, OtherResource]:
    return resource_adapter.validate_python(payload)


# ── Response envelopes ────────────────────────────────────────


class CodeableConcept(FhirModel):
    text: Optional[str] = None


class OperationOutcomeIssue(FhirModel):
    severity: str
    code: str
    details: Optional[CodeableConcept] = None
    diagnostics: Optional[str] = None


class OperationOutcome(FhirModel):
    resource_type: Literal["OperationOutcome"] = Field(
        default="OperationOutcome", alias="resourceType"
    )
    issue: list[OperationOutcomeIssue] = Field(default_factory=list)


class BundleEntry(FhirModel):
    full_url: Optional[str] = Field(default=None, alias="fullUrl")
    resource: Resource


class Bundle(FhirModel):
    resource_type: Literal["Bundle"] = Field(default="Bundle", alias="resourceType")
    type: str = "searchset"
    total: int = 0
    entry: list[BundleEntry] = Field(default_factory=list)
