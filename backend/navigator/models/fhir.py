"""Pydantic models for the subset of FHIR R4 the pipeline reads.

Only the fields the history serializer and identity derivation need are
modelled; everything else in a resource is ignored. Resource kinds the
pipeline does not know are kept as ``UnknownResource`` so that bundle order
is preserved.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class FhirModel(BaseModel):
    """Base model accepting FHIR camelCase keys as well as field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# --- Data types ---


class Coding(FhirModel):
    system: str | None = None
    code: str | None = None
    display: str | None = None


class CodeableConcept(FhirModel):
    text: str | None = None
    coding: list[Coding] = []

    def display_text(self) -> str:
        """Free-text label, else the first coding's display, else ``""``."""
        if self.text:
            return self.text
        if self.coding and self.coding[0].display:
            return self.coding[0].display
        return ""


class HumanName(FhirModel):
    family: str | None = None
    given: list[str] = []


class Quantity(FhirModel):
    value: int | float | None = None
    unit: str | None = None


class Identifier(FhirModel):
    system: str | None = None
    value: str | None = None


# --- Resources ---


class PatientResource(FhirModel):
    resource_type: Literal["Patient"] = "Patient"
    id: str | None = None
    identifier: list[Identifier] = []
    name: list[HumanName] = []
    gender: str | None = None
    birth_date: str | None = None


class ConditionResource(FhirModel):
    resource_type: Literal["Condition"] = "Condition"
    code: CodeableConcept | None = None
    onset_date_time: str | None = None


class MedicationStatementResource(FhirModel):
    resource_type: Literal["MedicationStatement"] = "MedicationStatement"
    medication_codeable_concept: CodeableConcept | None = None


class AllergyIntoleranceResource(FhirModel):
    resource_type: Literal["AllergyIntolerance"] = "AllergyIntolerance"
    code: CodeableConcept | None = None


class ProcedureResource(FhirModel):
    resource_type: Literal["Procedure"] = "Procedure"
    code: CodeableConcept | None = None
    performed_date_time: str | None = None


class ImmunizationResource(FhirModel):
    resource_type: Literal["Immunization"] = "Immunization"
    vaccine_code: CodeableConcept | None = None
    occurrence_date_time: str | None = None


class ObservationResource(FhirModel):
    resource_type: Literal["Observation"] = "Observation"
    code: CodeableConcept | None = None
    value_quantity: Quantity | None = None


class UnknownResource(FhirModel):
    """A resource kind the serializer has no rule for."""

    resource_type: str = ""
    raw: dict[str, Any] = {}


ClinicalResource = Union[
    PatientResource,
    ConditionResource,
    MedicationStatementResource,
    AllergyIntoleranceResource,
    ProcedureResource,
    ImmunizationResource,
    ObservationResource,
    UnknownResource,
]

RESOURCE_MODELS: dict[str, type[FhirModel]] = {
    "Patient": PatientResource,
    "Condition": ConditionResource,
    "MedicationStatement": MedicationStatementResource,
    "AllergyIntolerance": AllergyIntoleranceResource,
    "Procedure": ProcedureResource,
    "Immunization": ImmunizationResource,
    "Observation": ObservationResource,
}


def parse_resource(raw: dict[str, Any]) -> ClinicalResource:
    """Validate a raw resource mapping into its kind-specific model.

    Raises ``pydantic.ValidationError`` when a known kind has fields of the
    wrong shape.
    """
    resource_type = raw.get("resourceType")
    model = RESOURCE_MODELS.get(resource_type) if isinstance(resource_type, str) else None
    if model is None:
        return UnknownResource(
            resource_type=resource_type if isinstance(resource_type, str) else "",
            raw=raw,
        )
    return model.model_validate(raw)


# --- Bundle ---


class ClinicalBundle(BaseModel):
    """All resources read from one source document, in document order."""

    source_file: str
    resources: list[ClinicalResource] = []

    @property
    def patient(self) -> PatientResource | None:
        for resource in self.resources:
            if isinstance(resource, PatientResource):
                return resource
        return None

    def patient_identity(self) -> str:
        """Patient id, else first identifier value, else the filename stem."""
        patient = self.patient
        if patient is not None:
            if patient.id:
                return patient.id
            for identifier in patient.identifier:
                if identifier.value:
                    return identifier.value
        return Path(self.source_file).stem

    def display_name(self) -> str:
        """``"Given Family"`` from the Patient's first name entry."""
        patient = self.patient
        if patient is None or not patient.name:
            return ""
        name = patient.name[0]
        return " ".join([*name.given, name.family or ""]).strip()

    def family_name(self) -> str:
        patient = self.patient
        if patient is None or not patient.name:
            return ""
        return patient.name[0].family or ""
