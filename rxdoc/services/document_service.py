from __future__ import annotations

from typing import Any, Mapping, Optional

from ..config import RenderConfig
from ..models import ClinicalDocument, CorrelationResult
from .correlation import correlate_test_requests
from .fields import first_non_empty, pick_text
from .transforms import (
    normalize_medications,
    prescription_tests,
    resolve_diagnosis,
    resolve_follow_up,
    resolve_prepared_by,
    resolve_prescribed_by,
    resolve_prescribed_date,
    resolve_printed_by,
    resolve_remarks,
    resolve_report_generated,
    summarize_patient,
)


def normalize_document(raw_prescription: Any, test_request_pool: Any = None, patient: Any = None,
                       *, config: Optional[RenderConfig] = None) -> ClinicalDocument:
    """Build the canonical document for one prescription.

    The prescription's own tests and follow-up instruction win; when absent
    they are derived from the test requests correlated out of the pool.
    Malformed input degrades to empty fields, it never raises.
    """
    config = config or RenderConfig()
    rx: Mapping[str, Any] = raw_prescription if isinstance(raw_prescription, Mapping) else {}

    correlation: CorrelationResult = correlate_test_requests(rx, test_request_pool)
    own_tests = prescription_tests(rx)
    tests = own_tests if own_tests else list(correlation.items)

    follow_up = first_non_empty(
        (resolve_follow_up(rx), '\n'.join(correlation.instructions)),
        '',
    )

    if patient is None:
        patient = rx.get('patient') if isinstance(rx.get('patient'), Mapping) else rx.get('patientId')

    return ClinicalDocument(
        patient_summary=summarize_patient(patient),
        prescribed_by=resolve_prescribed_by(rx),
        prepared_by=resolve_prepared_by(rx),
        prepared_by_credentials=pick_text(rx, ('preparedByCredentials',)),
        medical_council_number=pick_text(rx, ('medicalCouncilNumber',)),
        printed_by=resolve_printed_by(rx),
        prescribed_date=resolve_prescribed_date(rx),
        report_generated_at=resolve_report_generated(rx),
        medications=tuple(normalize_medications(rx.get('medications'))),
        tests=tuple(tests),
        follow_up_instruction=follow_up,
        remarks=resolve_remarks(rx, config.default_remarks),
        diagnosis=resolve_diagnosis(rx),
        request_instructions=correlation.instructions,
    )
