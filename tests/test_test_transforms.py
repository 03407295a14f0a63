import pytest

from rxdoc.models import TestItem
from rxdoc.services.transforms import normalize_tests, prescription_tests


def test_array_of_records_uses_alias_chains():
    items = normalize_tests([
        {'testName': 'CBC', 'note': 'Fasting'},
        {'test_name': 'ESR'},
        {'testCode': 'RA-F', 'description': 'Repeat in 6 weeks'},
    ])
    assert items == [
        TestItem('CBC', 'Fasting'),
        TestItem('ESR', '—'),
        TestItem('RA-F', 'Repeat in 6 weeks'),
    ]


def test_array_of_strings():
    assert normalize_tests(['CBC', ' CRP ']) == [TestItem('CBC', '—'), TestItem('CRP', '—')]


def test_single_record_becomes_one_item():
    assert normalize_tests({'name': 'Anti-CCP', 'instructions': 'Morning sample'}) == [
        TestItem('Anti-CCP', 'Morning sample'),
    ]


def test_keyed_object_keeps_insertion_order():
    items = normalize_tests({'b': {'name': 'Second'}, 'a': {'name': 'First'}})
    assert [t.name for t in items] == ['Second', 'First']


def test_bare_string_is_one_test():
    assert normalize_tests('Lipid profile') == [TestItem('Lipid profile', '—')]


def test_blank_entries_are_dropped():
    assert normalize_tests(None) == []
    assert normalize_tests(['', None, '  ', 'HbA1c']) == [TestItem('HbA1c', '—')]


def test_record_without_known_fields_keeps_a_placeholder_row():
    assert normalize_tests([{'unexpected': True}]) == [TestItem('—', '—')]


@pytest.mark.parametrize('value, expected_len', [
    ([{'name': 'A'}, {'name': 'B'}], 2),
    (['A', 'B', 'C'], 3),
    ({'name': 'A'}, 1),
    ({'x': {'name': 'A'}, 'y': {'name': 'B'}}, 2),
    (None, 0),
])
def test_length_matches_logical_element_count(value, expected_len):
    assert len(normalize_tests(value)) == expected_len


def test_prescription_tests_prefers_first_non_empty_source():
    rx = {
        'tests': [],
        'testList': ['ESR'],
        'testRequestDetails': {'selectedTests': [{'testName': 'CBC'}]},
    }
    assert prescription_tests(rx) == [TestItem('ESR', '—')]


def test_prescription_tests_reads_nested_request_sources():
    rx = {'testRequestData': {'selectedTests': [{'name': 'CBC', 'instruction': 'Fasting'}]}}
    assert prescription_tests(rx) == [TestItem('CBC', 'Fasting')]
    assert prescription_tests({}) == []


def test_prescription_tests_skips_sources_with_only_blank_entries():
    rx = {'tests': ['', '  '], 'test': None, 'selectedTests': [{'testName': 'CBC'}]}
    assert prescription_tests(rx) == [TestItem('CBC', '—')]
