from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models import PLACEHOLDER, Medication, PatientSummary, TestItem
from .fields import (
    clean_text,
    coerce_sequence,
    first_non_empty,
    get_path,
    has_entries,
    is_empty,
    pick,
    pick_text,
    resolve_id,
    resolve_name,
)

log = logging.getLogger(__name__)


# --------------------- Alias chains ---------------------

MED_NAME_ALIASES = ('drugName', 'medicine', 'name', 'medicationName')
MED_DOSE_ALIASES = ('dose', 'dosage', 'dosageDetails', 'medicineDose')
MED_FREQUENCY_ALIASES = ('frequency', 'freq', 'medicineFrequency')
MED_DURATION_ALIASES = ('duration', 'period', 'medicineDuration', 'course')
MED_INSTRUCTION_ALIASES = ('instructions', 'instruction')

TEST_NAME_ALIASES = ('name', 'testName', 'test_name', 'test', 'title', 'testCode', 'code')
TEST_INSTRUCTION_ALIASES = ('instruction', 'instructions', 'note', 'description', 'details')

# Where a prescription may keep its own test list, richest/most common first
PRESCRIPTION_TEST_SOURCES = (
    'tests',
    'test',
    'testDetails',
    'testList',
    'selectedTests',
    'testsRequested',
    'requestedTests',
    'testItems',
    'orderedTests',
    'testOrders',
    'testRequest.selectedTests',
    'testRequestDetails.tests',
    'testRequestDetails.selectedTests',
    'testRequestData.selectedTests',
)

DIAGNOSIS_ALIASES = ('diagnosis', 'diagnosisSummary', 'diagnosisNotes', 'primaryDiagnosis')
FOLLOW_UP_ALIASES = ('followUpInstruction', 'testFollowupInstruction', 'followUp', 'instructions')
REMARKS_ALIASES = ('remarks', 'notes', 'instructions')
PRESCRIBED_DATE_ALIASES = ('prescribedDate', 'date', 'createdAt')
REPORT_GENERATED_ALIASES = ('reportGeneratedAt', 'updatedAt')


# ===================== Medications =====================

def normalize_medication(record: Any) -> Medication:
    """Map one source medication row of any shape to a Medication.

    Missing fields become the placeholder; rows are never dropped here.
    """
    if not isinstance(record, Mapping):
        log.debug("Medication row is not a record; using placeholders", extra={'row_type': type(record).__name__})
        return Medication()
    dose = pick_text(record, MED_DOSE_ALIASES)
    frequency = pick_text(record, MED_FREQUENCY_ALIASES)
    dosage_text = ' '.join(part for part in (dose, frequency) if part).strip()
    return Medication(
        name=pick_text(record, MED_NAME_ALIASES, PLACEHOLDER),
        dosage_text=dosage_text or PLACEHOLDER,
        duration=pick_text(record, MED_DURATION_ALIASES, PLACEHOLDER),
        instruction=pick_text(record, MED_INSTRUCTION_ALIASES, PLACEHOLDER),
    )


def normalize_medications(value: Any) -> List[Medication]:
    return [normalize_medication(row) for row in coerce_sequence(value)]


class MedicationValidationError(ValueError):
    """Raised when a submitted medication row lacks name, dose or duration."""

    message = "Please fill in the medicine name, dose, and duration for each entry."

    def __init__(self, rows: Sequence[int]):
        self.rows = list(rows)
        super().__init__(self.message)


_SUBMISSION_FIELDS = ('drugName', 'dose', 'frequency', 'duration', 'instructions')


def prepare_medications_for_submission(rows: Any) -> List[Dict[str, Any]]:
    """Trim form rows, drop entirely blank ones and require name/dose/duration on the rest.

    Returns the trimmed rows (other keys are kept as-is). Raises
    MedicationValidationError naming the 0-based positions of incomplete rows
    within the submitted list.
    """
    trimmed: List[Dict[str, Any]] = []
    incomplete: List[int] = []
    for index, row in enumerate(coerce_sequence(rows)):
        if not isinstance(row, Mapping):
            continue
        cleaned = dict(row)
        for key in _SUBMISSION_FIELDS:
            cleaned[key] = clean_text(row.get(key))
        if not any(cleaned[key] for key in _SUBMISSION_FIELDS):
            continue
        if not cleaned['drugName'] or not cleaned['dose'] or not cleaned['duration']:
            incomplete.append(index)
        trimmed.append(cleaned)
    if incomplete:
        raise MedicationValidationError(incomplete)
    return trimmed


# ===================== Tests =====================

def normalize_test_item(entry: Any) -> Optional[TestItem]:
    """One test entry (bare string or record) to a TestItem; None for blanks."""
    if isinstance(entry, Mapping):
        return TestItem(
            name=pick_text(entry, TEST_NAME_ALIASES, PLACEHOLDER),
            instruction=pick_text(entry, TEST_INSTRUCTION_ALIASES, PLACEHOLDER),
        )
    text = clean_text(entry)
    if not text:
        return None
    return TestItem(name=text, instruction=PLACEHOLDER)


def normalize_tests(value: Any) -> List[TestItem]:
    """Normalize a test list of unknown shape (list, keyed object, single record, string)."""
    if isinstance(value, Mapping) and _looks_like_test_record(value):
        value = [value]
    items: List[TestItem] = []
    for entry in coerce_sequence(value):
        item = normalize_test_item(entry)
        if item is not None:
            items.append(item)
    return items


def _looks_like_test_record(value: Mapping) -> bool:
    # a single test record, as opposed to an object keyed by position/code
    return any(key in value for key in TEST_NAME_ALIASES + TEST_INSTRUCTION_ALIASES)


def prescription_tests(prescription: Any) -> List[TestItem]:
    for path in PRESCRIPTION_TEST_SOURCES:
        source = get_path(prescription, path)
        if not has_entries(source):
            continue
        items = normalize_tests(source)
        if items:
            return items
    return []


# ===================== Prescription-level fields =====================

def resolve_diagnosis(prescription: Any) -> str:
    return pick_text(prescription, DIAGNOSIS_ALIASES)


def resolve_follow_up(prescription: Any) -> str:
    return pick_text(prescription, FOLLOW_UP_ALIASES)


def resolve_remarks(prescription: Any, default: str = '') -> str:
    return pick_text(prescription, REMARKS_ALIASES, default)


def _person(prescription: Any, aliases: Sequence[str]) -> str:
    if not isinstance(prescription, Mapping):
        return ''
    names = (resolve_name(pick(prescription, (alias,))) for alias in aliases)
    return first_non_empty(names, '')


def resolve_prescribed_by(prescription: Any) -> str:
    return _person(prescription, ('prescribedBy', 'doctorName', 'doctor', 'doctorId.name', 'updatedBy.name'))


def resolve_prepared_by(prescription: Any) -> str:
    return first_non_empty(
        (_person(prescription, ('preparedBy', 'prepared_by')), resolve_prescribed_by(prescription)),
        '',
    )


def resolve_printed_by(prescription: Any) -> str:
    return _person(
        prescription,
        ('printedBy', 'printed_by', 'preparedBy', 'prepared_by', 'updatedBy.name', 'doctorId.name'),
    )


def resolve_prescribed_date(prescription: Any) -> Any:
    return pick(prescription, PRESCRIBED_DATE_ALIASES)


def resolve_report_generated(prescription: Any) -> Any:
    return pick(prescription, REPORT_GENERATED_ALIASES)


# ===================== Patient =====================

def summarize_patient(patient: Any) -> PatientSummary:
    """Identification row: name, UHID-like identifier, "age / gender"."""
    if not isinstance(patient, Mapping):
        return PatientSummary()
    age = patient.get('age')
    gender = clean_text(patient.get('gender'))
    age_text = '' if is_empty(age) else clean_text(age)
    return PatientSummary(
        name=pick_text(patient, ('name', 'fullName', 'patientName')),
        identifier=resolve_id(first_non_empty(patient.get(k) for k in ('uhId', 'patientCode', '_id', 'id'))) or '',
        age_gender=' / '.join(part for part in (age_text, gender) if part),
    )
