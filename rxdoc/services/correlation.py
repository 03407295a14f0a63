from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..models import PLACEHOLDER, CorrelationResult, TestItem
from .fields import (
    clean_text,
    coerce_sequence,
    first_non_empty,
    has_entries,
    is_empty,
    pick,
    pick_text,
    resolve_id,
    unwrap_containers,
)
from .transforms import resolve_follow_up

log = logging.getLogger(__name__)

# Keys under which request payloads nest further requests
CONTAINER_KEYS = ('data', 'items', 'results', 'records', 'rows', 'entries', 'requests', 'testRequests')

PRESCRIPTION_REQUEST_ALIASES = ('testRequestId', 'latestTestRequest', 'testRequest')
REQUEST_FALLBACK_INSTRUCTION_ALIASES = (
    'testDescription',
    'followUpInstruction',
    'instructions',
    'notes',
    'remark',
    'remarks',
)
# Generic list-shaped sources checked after selectedTests
REQUEST_TEST_LIST_ALIASES = (
    'tests',
    'testList',
    'testDetails',
    'testInfo',
    'testNames',
    'testsRequested',
    'requestedTests',
    'testsRequestedExtended',
    'testOrder',
    'testOrderDetails',
)
# Singular string sources, in order
REQUEST_TEST_TEXT_ALIASES = ('testType', 'testNamesString', 'testName')

SELECTED_TEST_NAME_ALIASES = ('testName', 'name', 'testCode', 'code')
SELECTED_TEST_INSTRUCTION_ALIASES = ('instructions', 'instruction')
ENTRY_NAME_ALIASES = ('name', 'testName', 'test_name', 'title', 'test', 'testCode', 'code')
ENTRY_INSTRUCTION_ALIASES = ('instruction', 'instructions', 'note', 'description', 'details')

_TEST_BEARING_KEYS = ('selectedTests',) + REQUEST_TEST_LIST_ALIASES + REQUEST_TEST_TEXT_ALIASES


# --------------------- Flattening ---------------------

def flatten_requests(pool: Any) -> List[Mapping[str, Any]]:
    """Every record found in the pool, including those nested under container keys."""
    return [rec for rec in unwrap_containers(pool, CONTAINER_KEYS) if isinstance(rec, Mapping)]


def _holds_records(value: Any) -> bool:
    if isinstance(value, Mapping):
        return len(value) > 0
    if isinstance(value, (list, tuple)):
        return any(isinstance(element, (Mapping, list, tuple)) for element in value)
    return False


def _is_envelope(record: Mapping[str, Any]) -> bool:
    # response wrappers ({"data": [...]}) carry nested requests but no tests or instruction of their own
    if not any(_holds_records(record.get(key)) for key in CONTAINER_KEYS):
        return False
    if any(has_entries(record.get(key)) for key in _TEST_BEARING_KEYS):
        return False
    return not pick_text(record, REQUEST_FALLBACK_INSTRUCTION_ALIASES)


# --------------------- Identifiers ---------------------

def prescription_request_id(prescription: Any) -> Optional[str]:
    if not isinstance(prescription, Mapping):
        return None
    for alias in PRESCRIPTION_REQUEST_ALIASES:
        found = resolve_id(prescription.get(alias), keys=('_id', 'id', 'requestId'))
        if found:
            return found
    return None


def request_record_id(record: Mapping[str, Any]) -> Optional[str]:
    own = resolve_id(first_non_empty(record.get(k) for k in ('_id', 'id', 'requestId')))
    if own:
        return own
    nested = record.get('testRequest')
    if isinstance(nested, Mapping):
        return resolve_id(nested)
    return None


def patient_id(record: Any) -> Optional[str]:
    if not isinstance(record, Mapping):
        return None
    return resolve_id(record.get('patientId'))


def _visit(record: Any) -> str:
    if not isinstance(record, Mapping):
        return ''
    return clean_text(record.get('visit')).lower()


# --------------------- Matching ---------------------

def select_requests(prescription: Any, records: Sequence[Mapping[str, Any]]) -> Tuple[List[Mapping[str, Any]], str]:
    """Pick the records of the prescription's episode with progressively wider rules.

    Returns (matched records, strategy). The first rule yielding anything wins:
    exact request id, case-insensitive visit, patient id, then the whole pool
    when the prescription names no request. If nothing matched at all the
    whole pool is returned under the ``full_pool`` strategy.
    """
    if not records:
        return [], 'none'

    wanted_id = prescription_request_id(prescription)
    if wanted_id:
        matched = [rec for rec in records if request_record_id(rec) == wanted_id]
        if matched:
            return matched, 'request_id'

    wanted_visit = _visit(prescription)
    if wanted_visit:
        matched = [rec for rec in records if _visit(rec) and _visit(rec) == wanted_visit]
        if matched:
            return matched, 'visit'

    wanted_patient = patient_id(prescription)
    if wanted_patient:
        matched = [rec for rec in records if patient_id(rec) == wanted_patient]
        if matched:
            return matched, 'patient'

    if not wanted_id:
        return list(records), 'unlinked'

    log.warning(
        "No test request correlates with prescription; using the full request pool",
        extra={'test_request_id': wanted_id, 'pool_size': len(records)},
    )
    return list(records), 'full_pool'


# --------------------- Extraction ---------------------

class _Collector:
    def __init__(self) -> None:
        self.items: List[TestItem] = []
        self.instructions: Dict[str, None] = {}

    def push(self, name: Any, instruction: Any, fallback: str) -> None:
        resolved_name = clean_text(name) or PLACEHOLDER
        resolved_instruction = clean_text(instruction) or clean_text(fallback)
        if resolved_instruction:
            self.instructions.setdefault(resolved_instruction, None)
        self.items.append(TestItem(name=resolved_name, instruction=resolved_instruction or PLACEHOLDER))


def _extract(record: Mapping[str, Any], own_follow_up: str, out: _Collector) -> None:
    fallback = pick_text(record, REQUEST_FALLBACK_INSTRUCTION_ALIASES, own_follow_up)

    selected = record.get('selectedTests')
    if isinstance(selected, (list, tuple)) and selected:
        for test in selected:
            if isinstance(test, Mapping):
                out.push(
                    pick(test, SELECTED_TEST_NAME_ALIASES, PLACEHOLDER),
                    pick(test, SELECTED_TEST_INSTRUCTION_ALIASES),
                    fallback,
                )
            elif not is_empty(test):
                out.push(test, '', fallback)
        return

    source = first_non_empty(
        (record.get(alias) for alias in REQUEST_TEST_LIST_ALIASES if has_entries(record.get(alias))),
        None,
    )
    entries = coerce_sequence(source, split_text=True)
    for alias in REQUEST_TEST_TEXT_ALIASES:
        if entries:
            break
        entries = coerce_sequence(record.get(alias), split_text=True)

    if not entries:
        if fallback:
            out.push(pick(record, ('testType', 'testName')), '', fallback)
        return

    for entry in entries:
        if isinstance(entry, Mapping):
            out.push(
                pick(entry, ENTRY_NAME_ALIASES, PLACEHOLDER),
                pick(entry, ENTRY_INSTRUCTION_ALIASES),
                fallback,
            )
        elif not is_empty(entry):
            out.push(entry, '', fallback)


def derive_from_requests(records: Sequence[Mapping[str, Any]], own_follow_up: str = '') -> CorrelationResult:
    """Tests and distinct instructions carried by already-selected request records."""
    out = _Collector()
    for record in records:
        if not isinstance(record, Mapping) or _is_envelope(record):
            continue
        _extract(record, own_follow_up, out)
    return CorrelationResult(items=tuple(out.items), instructions=tuple(out.instructions))


def correlate_test_requests(prescription: Any, pool: Any) -> CorrelationResult:
    """Select the pool's records for this prescription's episode and derive tests from them."""
    records = flatten_requests(pool)
    matched, strategy = select_requests(prescription, records)
    derived = derive_from_requests(matched, resolve_follow_up(prescription))
    log.debug(
        "Correlated test requests",
        extra={'strategy': strategy, 'matched': len(matched), 'pool_size': len(records), 'items': len(derived.items)},
    )
    return CorrelationResult(
        items=derived.items,
        instructions=derived.instructions,
        strategy=strategy,
        matched=len(matched),
    )
