from __future__ import annotations

import logging
import re
from typing import Any, List, Mapping, Optional, Union
from urllib.parse import quote

from ..models import AttachmentLocation, AttachmentReference
from .fields import clean_text, first_non_empty, is_empty, pick_text, unwrap_containers

log = logging.getLogger(__name__)

HISTORY_ATTACHMENT_KEYS = (
    'attachments',
    'medicalHistoryDocs',
    'supportingDocuments',
    'documents',
    'historyDocuments',
    'files',
)
# API namespaces that require the authenticated channel
AUTH_API_PREFIXES = ('/api/documents/', '/api/files/')

_SCHEME_RE = re.compile(r'^[A-Za-z][A-Za-z0-9+.\-]*://')
_SEGMENT_SPLIT_RE = re.compile(r'[\\/]+')


class AttachmentUnresolvable(LookupError):
    """No documentId, filename or path could be resolved from the reference."""

    user_message = 'File not available'

    def __init__(self, message: str = 'File not available'):
        super().__init__(message)


AttachmentInput = Union[AttachmentReference, Mapping[str, Any], str, None]


# --------------------- Reference normalization ---------------------

def _basename(value: str) -> str:
    parts = [p for p in _SEGMENT_SPLIT_RE.split(value) if p]
    return parts[-1] if parts else value


def _size(value: Any) -> Optional[int]:
    if is_empty(value) or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _is_api_or_url(value: str) -> bool:
    return is_absolute_url(value) or value.startswith(('/api/', 'api/'))


def normalize_attachment(doc: AttachmentInput) -> Optional[AttachmentReference]:
    """Accept a bare string or a loosely-typed record; None when nothing is resolvable."""
    if isinstance(doc, AttachmentReference):
        return doc if (doc.document_id or doc.filename or doc.path or doc.download_path) else None
    if isinstance(doc, str):
        text = doc.strip()
        if not text:
            return None
        name = _basename(text)
        return AttachmentReference(filename=name, original_name=name, path=text)
    if not isinstance(doc, Mapping):
        return None

    filename = pick_text(doc, ('filename', 'fileName', 'name', 'documentName', 'originalName')) or None
    original_name = pick_text(doc, ('originalName', 'name', 'fileName', 'filename', 'documentName')) or None
    path = pick_text(doc, ('path', 'url')) or None
    download_path = pick_text(doc, ('downloadPath',)) or None
    document_id = pick_text(doc, ('documentId', '_id')) or None
    if document_id in ('null', 'undefined'):
        document_id = None
    # a directory-style filename stands in for the path only when no document id can be used
    if (not document_id and not path and not download_path and filename and '/' in filename
            and not _is_api_or_url(filename)):
        path = filename

    if not (document_id or filename or path or download_path):
        return None
    return AttachmentReference(
        document_id=document_id,
        filename=filename,
        original_name=original_name,
        path=path,
        download_path=download_path,
        size=_size(first_non_empty(doc.get(k) for k in ('size', 'fileSize', 'sizeInBytes'))),
    )


def collect_attachments(history_item: Any) -> List[AttachmentReference]:
    """All valid attachment references on a history/medical record, in order."""
    if not isinstance(history_item, Mapping):
        return []
    containers = [history_item.get(key) for key in HISTORY_ATTACHMENT_KEYS]
    found = unwrap_containers(containers, HISTORY_ATTACHMENT_KEYS, keep_scalars=True)
    refs = [ref for ref in (normalize_attachment(doc) for doc in found) if ref is not None]
    if not refs and not is_empty(history_item.get('reportFile')):
        report = normalize_attachment({
            'filename': history_item.get('reportFile'),
            'originalName': clean_text(history_item.get('originalName')) or 'Medical Report',
        })
        if report is not None:
            refs.append(report)
    return refs


def format_file_size(size: Any) -> str:
    value = _size(size)
    if not value or value <= 0:
        return ''
    units = ('B', 'KB', 'MB', 'GB')
    exponent = 0
    scaled = float(value)
    while scaled >= 1024 and exponent < len(units) - 1:
        scaled /= 1024
        exponent += 1
    return f"{scaled:.0f} {units[exponent]}" if exponent == 0 else f"{scaled:.2f} {units[exponent]}"


# --------------------- URL building ---------------------

def is_absolute_url(value: str) -> bool:
    return bool(_SCHEME_RE.match(value))


def encode_path_segments(raw: str) -> str:
    trimmed = raw.strip('/')
    return '/'.join(quote(seg, safe="!~*'()") for seg in _SEGMENT_SPLIT_RE.split(trimmed) if seg)


def _encode_api_path(path: str) -> str:
    segments = path.split('/')
    return '/'.join(seg if i == 0 else quote(seg, safe="!~*'()") for i, seg in enumerate(segments))


def resolve_attachment(reference: AttachmentInput, *, backend_url: str = '') -> AttachmentLocation:
    """Turn a reference into a fetchable URL and say whether it needs the authenticated API.

    Rules, first match wins: absolute path, static path, document id,
    filename (absolute, API path, rooted path, bare name). Raises
    AttachmentUnresolvable when none applies.
    """
    ref = normalize_attachment(reference)
    if ref is None:
        raise AttachmentUnresolvable()
    base = backend_url.rstrip('/')

    raw_path = ref.path or ref.download_path
    if raw_path:
        if is_absolute_url(raw_path):
            return AttachmentLocation(url=raw_path, is_api=False)
        return AttachmentLocation(url=f"{base}/{encode_path_segments(raw_path)}", is_api=False)

    if ref.document_id and ref.document_id not in ('null', 'undefined'):
        api_path = f"/api/documents/{quote(ref.document_id, safe='')}/download"
        return AttachmentLocation(url=f"{base}{api_path}", is_api=True, api_path=api_path)

    name = clean_text(ref.filename or ref.original_name)
    if name:
        if is_absolute_url(name):
            return AttachmentLocation(url=name, is_api=False)
        if name.startswith('/api/') or name.startswith('api/'):
            path = name if name.startswith('/') else f'/{name}'
            needs_auth = path.startswith(AUTH_API_PREFIXES)
            encoded = _encode_api_path(path)
            return AttachmentLocation(url=f"{base}{encoded}", is_api=needs_auth,
                                      api_path=encoded if needs_auth else None)
        if name.startswith('/'):
            return AttachmentLocation(url=f"{base}{name}", is_api=False)
        return AttachmentLocation(url=f"{base}/api/files/{encode_path_segments(name)}", is_api=False)

    raise AttachmentUnresolvable()


def legacy_fallback_url(reference: AttachmentInput, *, backend_url: str = '') -> Optional[str]:
    """Static URL tried when the authenticated API route fails."""
    ref = normalize_attachment(reference)
    if ref is None:
        return None
    base = backend_url.rstrip('/')
    if ref.path:
        if is_absolute_url(ref.path):
            return ref.path
        return f"{base}/{encode_path_segments(ref.path)}"
    name = clean_text(ref.filename or ref.original_name)
    if name:
        if is_absolute_url(name):
            return name
        if name.startswith('/'):
            return f"{base}{name}"
        return f"{base}/api/files/{encode_path_segments(name)}"
    return None


def strip_backend_prefix(url: str, backend_url: str) -> Optional[str]:
    """Backend-relative path of ``url``, or None when it points elsewhere."""
    base = (backend_url or '').rstrip('/')
    if not url or not base or not url.startswith(base):
        return None
    remainder = url[len(base):]
    if remainder and not remainder.startswith(('/', '?', '#')):
        # same prefix, different host (http://api vs http://api2)
        return None
    return remainder if remainder.startswith('/') else f'/{remainder}'
