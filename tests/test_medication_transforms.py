import pytest

from rxdoc.models import Medication
from rxdoc.services.transforms import (
    MedicationValidationError,
    normalize_medication,
    normalize_medications,
    prepare_medications_for_submission,
)


def test_medication_primary_fields():
    med = normalize_medication({
        'drugName': 'Folitrax',
        'dose': '15mg',
        'frequency': 'weekly',
        'duration': '12 weeks',
        'instructions': 'After food',
    })
    assert med == Medication(name='Folitrax', dosage_text='15mg weekly', duration='12 weeks', instruction='After food')


def test_medication_legacy_aliases():
    med = normalize_medication({
        'medicationName': 'HCQS',
        'medicineDose': '200mg',
        'medicineFrequency': 'OD',
        'course': '3 months',
        'instruction': 'Night',
    })
    assert med.name == 'HCQS'
    assert med.dosage_text == '200mg OD'
    assert med.duration == '3 months'
    assert med.instruction == 'Night'


def test_medication_dosage_with_one_part_is_trimmed():
    assert normalize_medication({'name': 'A', 'dosage': ' 10mg '}).dosage_text == '10mg'
    assert normalize_medication({'name': 'A', 'freq': 'BD'}).dosage_text == 'BD'


def test_medication_missing_fields_are_placeholders():
    med = normalize_medication({'unknown': 'value', 'dose': '   '})
    assert med == Medication(name='—', dosage_text='—', duration='—', instruction='—')


@pytest.mark.parametrize('row', [None, 'Folitrax', 12, ['a'], True])
def test_medication_non_record_rows_never_raise(row):
    assert normalize_medication(row) == Medication()


def test_medications_keep_empty_rows_when_rendering():
    meds = normalize_medications([{'drugName': 'A'}, {}, {'drugName': 'B'}])
    assert [m.name for m in meds] == ['A', '—', 'B']
    assert normalize_medications(None) == []


def test_submission_drops_blank_rows_and_trims():
    rows = prepare_medications_for_submission([
        {'drugName': ' Folitrax ', 'dose': '15mg ', 'frequency': ' weekly', 'duration': '12 weeks', 'instructions': ''},
        {'drugName': '  ', 'dose': '', 'frequency': '', 'duration': '', 'instructions': ''},
    ])
    assert len(rows) == 1
    assert rows[0]['drugName'] == 'Folitrax'
    assert rows[0]['dose'] == '15mg'
    assert rows[0]['frequency'] == 'weekly'


def test_submission_rejects_incomplete_rows():
    with pytest.raises(MedicationValidationError) as exc:
        prepare_medications_for_submission([
            {'drugName': 'A', 'dose': '1', 'duration': '2 days'},
            {'drugName': 'B', 'dose': '', 'duration': '2 days'},
        ])
    assert exc.value.rows == [1]
    assert 'medicine name, dose, and duration' in str(exc.value)
