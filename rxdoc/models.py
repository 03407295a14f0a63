from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple, Union

PLACEHOLDER = "—"


@dataclass(frozen=True)
class Medication:
    name: str = PLACEHOLDER
    dosage_text: str = PLACEHOLDER
    duration: str = PLACEHOLDER
    instruction: str = PLACEHOLDER

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'dosageText': self.dosage_text,
            'duration': self.duration,
            'instruction': self.instruction,
        }


@dataclass(frozen=True)
class TestItem:
    name: str = PLACEHOLDER
    instruction: str = PLACEHOLDER

    # keep pytest from collecting this as a test class
    __test__ = False

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'instruction': self.instruction}


@dataclass(frozen=True)
class CenterInfo:
    """Letterhead of the issuing center. Every field resolves independently."""
    name: str = ''
    sub_title: str = ''
    address: str = ''
    phone: str = ''
    fax: str = ''
    email: str = ''
    website: str = ''
    lab_website: str = ''
    miss_call_number: str = ''
    mobile_number: str = ''
    code: str = ''
    logo_url: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {_CENTER_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}


# attribute name -> camelCase key used by the records we receive
_CENTER_KEYS: Dict[str, str] = {
    'name': 'name',
    'sub_title': 'subTitle',
    'address': 'address',
    'phone': 'phone',
    'fax': 'fax',
    'email': 'email',
    'website': 'website',
    'lab_website': 'labWebsite',
    'miss_call_number': 'missCallNumber',
    'mobile_number': 'mobileNumber',
    'code': 'code',
    'logo_url': 'logoUrl',
}


def center_field_keys() -> Dict[str, str]:
    return dict(_CENTER_KEYS)


@dataclass(frozen=True)
class PatientSummary:
    name: str = ''
    identifier: str = ''
    age_gender: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'identifier': self.identifier, 'ageGender': self.age_gender}


DateLike = Union[dt.datetime, dt.date, str, int, float, None]


@dataclass(frozen=True)
class ClinicalDocument:
    """Canonical, render-ready prescription.

    ``tests`` and ``follow_up_instruction`` already carry the "own value
    wins, else derived from correlated test requests" resolution.
    ``request_instructions`` keeps the distinct instructions harvested from
    the correlated requests so the renderer can fall back to them.
    """
    patient_summary: PatientSummary = field(default_factory=PatientSummary)
    prescribed_by: str = ''
    prepared_by: str = ''
    prepared_by_credentials: str = ''
    medical_council_number: str = ''
    printed_by: str = ''
    prescribed_date: DateLike = None
    report_generated_at: DateLike = None
    medications: Tuple[Medication, ...] = ()
    tests: Tuple[TestItem, ...] = ()
    follow_up_instruction: str = ''
    remarks: str = ''
    diagnosis: str = ''
    request_instructions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'patientSummary': self.patient_summary.to_dict(),
            'prescribedBy': self.prescribed_by,
            'preparedBy': self.prepared_by,
            'preparedByCredentials': self.prepared_by_credentials,
            'medicalCouncilNumber': self.medical_council_number,
            'printedBy': self.printed_by,
            'prescribedDate': _date_to_json(self.prescribed_date),
            'reportGeneratedAt': _date_to_json(self.report_generated_at),
            'medications': [m.to_dict() for m in self.medications],
            'tests': [t.to_dict() for t in self.tests],
            'followUpInstruction': self.follow_up_instruction,
            'remarks': self.remarks,
            'diagnosis': self.diagnosis,
            'requestInstructions': list(self.request_instructions),
        }


def _date_to_json(value: DateLike) -> Any:
    if isinstance(value, (dt.datetime, dt.date)):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class CorrelationResult:
    items: Tuple[TestItem, ...] = ()
    instructions: Tuple[str, ...] = ()
    # which matching rule selected the records (request_id, visit, patient, unlinked, full_pool)
    strategy: str = 'none'
    matched: int = 0


@dataclass(frozen=True)
class AttachmentReference:
    document_id: Optional[str] = None
    filename: Optional[str] = None
    original_name: Optional[str] = None
    path: Optional[str] = None
    download_path: Optional[str] = None
    size: Optional[int] = None

    @property
    def label(self) -> str:
        return self.original_name or self.filename or 'Document'

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in (
            ('documentId', self.document_id),
            ('filename', self.filename),
            ('originalName', self.original_name),
            ('path', self.path),
            ('downloadPath', self.download_path),
            ('size', self.size),
        ):
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class AttachmentLocation:
    url: str
    is_api: bool = False
    api_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {'url': self.url, 'isApi': self.is_api}
        if self.api_path:
            out['apiPath'] = self.api_path
        return out
