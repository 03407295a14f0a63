from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from ..models import CenterInfo, center_field_keys
from .fields import clean_text, first_non_empty

log = logging.getLogger(__name__)

DEFAULT_CENTER_INFO = CenterInfo(
    name="CHANRE RHEUMATOLOGY & IMMUNOLOGY CENTER & RESEARCH",
    sub_title=(
        "Specialists in Rheumatology, Autoimmune Disease, Allergy, Immune Defiency, Rheumatoid Immunology, "
        "Vasculitis and Rare Infections & Infertility"
    ),
    address="No. 414/5&6, 20th Main, West of Chord Road, 1st Block, Rajajinagar, Bengaluru - 560 010.",
    phone="080-42516699",
    fax="080-42516600",
    email="info@chanreclinic.com",
    website="www.chanreicr.com | www.mychanreclinic.com",
    lab_website="www.chanrelabresults.com",
    miss_call_number="080-42516666",
    mobile_number="9532333122",
    code="",
    logo_url="",
)

# Extra spellings seen on center records, tried after the canonical key
_FIELD_ALIASES: Dict[str, tuple] = {
    'name': ('hospitalName', 'centerName'),
    'mobile_number': ('appointmentNumber',),
    'code': ('centerCode',),
    'logo_url': ('centerLogo', 'logo'),
}

PartialCenter = Union[CenterInfo, Mapping[str, Any], None]


def resolve_logo_url(value: Any, base_url: str = '') -> str:
    text = clean_text(value)
    if not text:
        return ''
    lowered = text.lower()
    if lowered.startswith(('http://', 'https://', 'data:')):
        return text
    base = (base_url or '').rstrip('/')
    if base and (text == base or text.startswith(f'{base}/')):
        # already carries the base
        return text
    path = text if text.startswith('/') else f'/{text}'
    return f"{base}{path}"


def _joined_address(partial: Mapping[str, Any]) -> str:
    parts = [clean_text(partial.get('address')), clean_text(partial.get('location'))]
    return ', '.join(part for part in parts if part)


def _as_mapping(partial: PartialCenter) -> Mapping[str, Any]:
    if isinstance(partial, CenterInfo):
        return partial.to_dict()
    if isinstance(partial, Mapping):
        return partial
    return {}


def resolve_center_info(partial: PartialCenter, defaults: CenterInfo = DEFAULT_CENTER_INFO,
                        *, asset_base_url: str = '') -> CenterInfo:
    """Merge a partial center record over the defaults one field at a time.

    A present value always wins over its default; an absent one falls back to
    the default for that field only. ``address`` and ``location`` are joined
    with ", " into the address candidate.
    """
    source = _as_mapping(partial)
    keys = center_field_keys()
    resolved: Dict[str, Any] = {}
    for attr, key in keys.items():
        if attr == 'address':
            candidate: Any = _joined_address(source)
        else:
            aliases = (key,) + _FIELD_ALIASES.get(attr, ())
            candidate = first_non_empty(source.get(alias) for alias in aliases)
        value = first_non_empty((candidate, getattr(defaults, attr)), '')
        resolved[attr] = clean_text(value)
    resolved['logo_url'] = resolve_logo_url(resolved['logo_url'], asset_base_url)
    return CenterInfo(**resolved)


def contact_lines(center: CenterInfo) -> List[str]:
    """Letterhead contact lines; empty segments and empty lines are left out."""
    def _line(*segments: str) -> str:
        return ' | '.join(seg for seg in segments if seg)

    lines = [
        _line(
            f"Phone: {center.phone}" if center.phone else '',
            f"Fax: {center.fax}" if center.fax else '',
            f"Center Code: {center.code}" if center.code else '',
        ),
        _line(
            f"Email: {center.email}" if center.email else '',
            center.website,
        ),
        _line(
            f"Lab: {center.lab_website}" if center.lab_website else '',
            f"Missed Call: {center.miss_call_number}" if center.miss_call_number else '',
            f"Appointment: {center.mobile_number}" if center.mobile_number else '',
        ),
    ]
    return [line for line in lines if line]


def load_center_defaults(path: Optional[Union[str, Path]], base: CenterInfo = DEFAULT_CENTER_INFO) -> CenterInfo:
    """Overlay letterhead defaults from a JSON file (camelCase keys), field by field."""
    if not path:
        return base
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding='utf-8'))
    except FileNotFoundError:
        log.warning("Center defaults file not found; using built-in letterhead", extra={'center_file': str(p)})
        return base
    if not isinstance(data, Mapping):
        raise ValueError(f"Expected a JSON object in {p}")
    merged = resolve_center_info(data, base)
    # an explicit empty string in the file clears that default
    cleared = {attr: '' for attr, key in center_field_keys().items() if data.get(key) == ''}
    return dataclasses.replace(merged, **cleared) if cleared else merged
