"""Flatten a patient's clinical bundle into text for embedding.

One line per resource, in bundle order. Output is a pure function of the
bundle: the same bundle always yields byte-identical text, which is what
makes re-ingestion overwrite identical vectors.
"""

from __future__ import annotations

from navigator.models.fhir import (
    AllergyIntoleranceResource,
    ClinicalBundle,
    ClinicalResource,
    CodeableConcept,
    ConditionResource,
    ImmunizationResource,
    MedicationStatementResource,
    ObservationResource,
    PatientResource,
    ProcedureResource,
)


def _text(value: str | None) -> str:
    return value or ""


def _number(value: int | float | None) -> str:
    """Render like JSON: ``120.0`` -> ``"120"``, ``7.2`` -> ``"7.2"``."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _concept(concept: CodeableConcept | None) -> str | None:
    return concept.display_text() if concept is not None else None


def format_resource(resource: ClinicalResource) -> str:
    """Format one resource as a single line.

    Unknown kinds, and known kinds missing the element their line is built
    around, produce ``""``.
    """
    if isinstance(resource, PatientResource):
        if not resource.name:
            return ""
        name = resource.name[0]
        return (
            f"Patient: {' '.join(name.given)} {_text(name.family)}, "
            f"Gender: {_text(resource.gender)}, DOB: {_text(resource.birth_date)}"
        )

    if isinstance(resource, ConditionResource):
        label = _concept(resource.code)
        if label is None:
            return ""
        return f"Condition: {label}, Onset: {_text(resource.onset_date_time)}"

    if isinstance(resource, MedicationStatementResource):
        label = _concept(resource.medication_codeable_concept)
        if label is None:
            return ""
        return f"Medication: {label}"

    if isinstance(resource, AllergyIntoleranceResource):
        label = _concept(resource.code)
        if label is None:
            return ""
        return f"Allergy: {label}"

    if isinstance(resource, ProcedureResource):
        label = _concept(resource.code)
        if label is None:
            return ""
        return f"Procedure: {label}, Date: {_text(resource.performed_date_time)}"

    if isinstance(resource, ImmunizationResource):
        label = _concept(resource.vaccine_code)
        if label is None:
            return ""
        return f"Immunization: {label}, Date: {_text(resource.occurrence_date_time)}"

    if isinstance(resource, ObservationResource):
        label = _concept(resource.code)
        if label is None:
            return ""
        quantity = resource.value_quantity
        value = _number(quantity.value) if quantity else ""
        unit = _text(quantity.unit) if quantity else ""
        return f"Observation: {label}, Value: {value} {unit}"

    return ""


def serialize_history(bundle: ClinicalBundle) -> str:
    """Serialize every resource in ``bundle``, newline separated."""
    return "\n".join(format_resource(resource) for resource in bundle.resources)
