from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

import requests

from ..services.attachments import (
    AttachmentInput,
    legacy_fallback_url,
    resolve_attachment,
    strip_backend_prefix,
)

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = 'application/pdf'


class GatewayError(RuntimeError):
    pass


class AttachmentAuthFailure(GatewayError):
    """The backend refused the attachment; ``user_message`` is shown as-is."""
    status = 0
    user_message = 'Failed to open document. Please try again.'

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"{self.status} for {url}")


class AttachmentSessionExpired(AttachmentAuthFailure):
    status = 401
    user_message = 'Session expired. Please log in again to access documents.'


class AttachmentAccessDenied(AttachmentAuthFailure):
    status = 403
    user_message = 'You do not have permission to access this document.'


class AttachmentNotFound(AttachmentAuthFailure):
    status = 404
    user_message = 'Document not found.'


_STATUS_ERRORS = {
    401: AttachmentSessionExpired,
    403: AttachmentAccessDenied,
    404: AttachmentNotFound,
}


@dataclass(frozen=True)
class AttachmentPayload:
    content: bytes
    content_type: str
    url: str
    authenticated: bool


TokenSource = Union[str, Callable[[], Optional[str]], None]


class AttachmentGateway:
    """HTTP facade for attachment downloads: bearer-token channel or plain direct load."""

    def __init__(self, base_url: str, token: TokenSource = None, *, timeout: float = 30,
                 verify: bool = True, session: Optional[requests.Session] = None):
        self.base_url = (base_url or '').rstrip('/')
        self._token = token
        self.timeout = timeout
        self.verify = verify
        self.session = session or requests.Session()

    def _bearer(self) -> Optional[str]:
        tok = self._token() if callable(self._token) else self._token
        tok = (tok or '').strip()
        if tok.lower().startswith('bearer '):
            tok = tok[7:].strip()
        return tok or None

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith(('http://', 'https://')):
            return path_or_url
        path = path_or_url if path_or_url.startswith('/') else f'/{path_or_url}'
        return f"{self.base_url}{path}"

    def fetch(self, path_or_url: str, *, authenticated: bool = True) -> AttachmentPayload:
        """Single GET. 401/403/404 raise their distinct errors, other failures GatewayError."""
        url = self._url(path_or_url)
        headers = {'Accept': '*/*'}
        tok = self._bearer() if authenticated else None
        if tok:
            headers['Authorization'] = f"Bearer {tok}"
        try:
            r = self.session.get(url, headers=headers, timeout=self.timeout, verify=self.verify)
        except requests.RequestException as e:
            raise GatewayError(f"Attachment request failed: {e}")
        error_cls = _STATUS_ERRORS.get(r.status_code)
        if error_cls is not None:
            raise error_cls(url)
        try:
            r.raise_for_status()
        except requests.HTTPError as e:
            raise GatewayError(f"Attachment request failed: {e}")
        content_type = r.headers.get('Content-Type') or DEFAULT_CONTENT_TYPE
        return AttachmentPayload(content=r.content, content_type=content_type, url=url, authenticated=authenticated)


def _load(gateway: AttachmentGateway, url: str) -> AttachmentPayload:
    # backend URLs go through the authenticated channel, external ones load directly
    relative = strip_backend_prefix(url, gateway.base_url)
    if relative:
        return gateway.fetch(relative, authenticated=True)
    return gateway.fetch(url, authenticated=False)


def retrieve_attachment(reference: AttachmentInput, gateway: AttachmentGateway) -> AttachmentPayload:
    """Fetch an attachment with at most one fallback attempt.

    API references go through the authenticated channel; on a transport
    failure the legacy static URL is tried once. Static references on the
    backend are tried with credentials first, then loaded directly. 401, 403
    and 404 are raised immediately and never retried. Raises
    AttachmentUnresolvable when the reference has nothing to resolve.
    """
    location = resolve_attachment(reference, backend_url=gateway.base_url)

    if not location.is_api:
        relative = strip_backend_prefix(location.url, gateway.base_url)
        if not relative:
            return gateway.fetch(location.url, authenticated=False)
        try:
            return gateway.fetch(relative, authenticated=True)
        except AttachmentAuthFailure as e:
            log.warning("Attachment refused", extra={'status': e.status, 'url': e.url})
            raise
        except GatewayError as e:
            log.warning("Authenticated attachment load failed; loading directly", extra={'url': location.url, 'error': str(e)})
            return gateway.fetch(location.url, authenticated=False)

    api_path = location.api_path or strip_backend_prefix(location.url, gateway.base_url) or location.url
    try:
        return gateway.fetch(api_path, authenticated=True)
    except AttachmentAuthFailure as e:
        log.warning("Attachment refused", extra={'status': e.status, 'url': e.url})
        raise
    except GatewayError as e:
        fallback = legacy_fallback_url(reference, backend_url=gateway.base_url)
        if not fallback:
            raise
        log.warning("Attachment API failed; trying legacy location", extra={'url': fallback, 'error': str(e)})
        return _load(gateway, fallback)
