"""Print-ready markup for canonical clinical documents, backed by a Jinja template."""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import RenderConfig
from ..models import PLACEHOLDER, CenterInfo, ClinicalDocument, PatientSummary
from .center_info import contact_lines, resolve_center_info
from .fields import clean_text
from .transforms import summarize_patient

_TEMPLATE_ROOT = Path(__file__).resolve().parents[1] / 'templates'
PRESCRIPTION_TEMPLATE = 'prescription_print.html'

_ENV = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_ROOT)),
    autoescape=select_autoescape(['html']),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


# --------------------- Dates ---------------------

def to_datetime(value: Any) -> Optional[dt.datetime]:
    """Best-effort parse: datetime/date objects, ISO strings (``Z`` allowed), epoch milliseconds."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        try:
            return dt.datetime.fromtimestamp(value / 1000.0, tz=dt.timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    s = clean_text(value)
    if not s:
        return None
    try:
        return dt.datetime.fromisoformat(s.replace('Z', '+00:00'))
    except ValueError:
        return None


def format_date(value: Any, with_time: bool = False, config: Optional[RenderConfig] = None) -> str:
    """Fixed-format date (or date-time) text; the placeholder when missing or unparseable."""
    config = config or RenderConfig()
    parsed = to_datetime(value)
    if parsed is None:
        return PLACEHOLDER
    if parsed.tzinfo is not None and config.timezone:
        parsed = parsed.astimezone(ZoneInfo(config.timezone))
    return parsed.strftime(config.datetime_format if with_time else config.date_format)


def current_time() -> dt.datetime:
    """Local wall-clock time, zone-aware so RenderConfig.timezone can still convert it."""
    return dt.datetime.now().astimezone()


# --------------------- Rendering ---------------------

def _or_placeholder(value: Any) -> str:
    return clean_text(value) or PLACEHOLDER


def follow_up_text(document: ClinicalDocument) -> str:
    own = clean_text(document.follow_up_instruction)
    if own:
        return own
    derived = '\n'.join(i for i in document.request_instructions if clean_text(i))
    return derived or PLACEHOLDER


def render_document(document: ClinicalDocument, center: Union[CenterInfo, dict, None] = None,
                    patient: Union[PatientSummary, dict, None] = None, *,
                    config: Optional[RenderConfig] = None, now: Optional[dt.datetime] = None) -> str:
    """Render the document to static HTML.

    Output depends only on the arguments; the single wall-clock field is the
    "printed on" stamp (``now`` defaults to the local time), emitted once
    inside ``<span data-printed-on>``.
    """
    config = config or RenderConfig()
    center_info = resolve_center_info(center, config.default_center, asset_base_url=config.asset_base_url)
    if isinstance(patient, PatientSummary):
        summary = patient
    elif patient is not None:
        summary = summarize_patient(patient)
    else:
        summary = document.patient_summary

    printed_on = format_date(now or current_time(), with_time=True, config=config)

    template = _ENV.get_template(PRESCRIPTION_TEMPLATE)
    return template.render(
        center=center_info,
        contact_lines=contact_lines(center_info),
        patient_name=_or_placeholder(summary.name),
        patient_title=clean_text(summary.name) or 'Patient',
        patient_identifier=_or_placeholder(summary.identifier),
        patient_age_gender=_or_placeholder(summary.age_gender),
        diagnosis=_or_placeholder(document.diagnosis),
        prescribed_date=format_date(document.prescribed_date, config=config),
        medications=document.medications,
        tests=document.tests,
        follow_up=follow_up_text(document),
        remarks=_or_placeholder(document.remarks),
        prescribed_by=_or_placeholder(document.prescribed_by),
        prepared_by=_or_placeholder(document.prepared_by or document.prescribed_by),
        prepared_by_credentials=clean_text(document.prepared_by_credentials),
        medical_council_number=clean_text(document.medical_council_number),
        printed_by=_or_placeholder(document.printed_by),
        report_generated=format_date(document.report_generated_at, with_time=True, config=config),
        printed_on=printed_on,
        auto_print=config.auto_print,
    )
