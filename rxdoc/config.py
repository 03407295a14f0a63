from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .models import CenterInfo
from .services.center_info import DEFAULT_CENTER_INFO, load_center_defaults


def _truthy(v: Optional[str], default: str = '0') -> bool:
    s = v if v is not None else default
    return str(s).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class RenderConfig:
    """Everything the renderer and center resolver would otherwise read from globals."""
    default_center: CenterInfo = field(default_factory=lambda: DEFAULT_CENTER_INFO)
    date_format: str = '%d/%m/%Y'
    datetime_format: str = '%d/%m/%Y, %H:%M'
    # IANA zone for timezone-aware values; None shows them as given
    timezone: Optional[str] = None
    default_remarks: str = ''
    asset_base_url: str = ''
    auto_print: bool = False


def load_render_config(env: Optional[Mapping[str, str]] = None) -> RenderConfig:
    """Build a RenderConfig from RXDOC_* environment variables."""
    env = os.environ if env is None else env
    return RenderConfig(
        default_center=load_center_defaults(env.get('RXDOC_CENTER_FILE')),
        date_format=env.get('RXDOC_DATE_FORMAT', '%d/%m/%Y'),
        datetime_format=env.get('RXDOC_DATETIME_FORMAT', '%d/%m/%Y, %H:%M'),
        timezone=(env.get('RXDOC_TIMEZONE') or '').strip() or None,
        default_remarks=env.get('RXDOC_DEFAULT_REMARKS', ''),
        asset_base_url=env.get('RXDOC_ASSET_BASE_URL', ''),
        auto_print=_truthy(env.get('RXDOC_AUTO_PRINT'), '0'),
    )


def backend_url(env: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if env is None else env
    return (env.get('RXDOC_BACKEND_URL') or 'http://localhost:5000').rstrip('/')


def http_settings(env: Optional[Mapping[str, str]] = None) -> dict:
    env = os.environ if env is None else env
    return {
        'timeout': float(env.get('RXDOC_HTTP_TIMEOUT', '30')),
        'verify': _truthy(env.get('RXDOC_VERIFY_SSL'), '1'),
    }
