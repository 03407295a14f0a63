import os

import pytest

from rxdoc.config import backend_url, http_settings
from rxdoc.gateways.attachment_gateway import AttachmentGateway, retrieve_attachment


@pytest.mark.integration
def test_retrieve_attachment_live():
    """
    Live retrieval of one document from a running backend.
    Skipped unless LIVE_BACKEND=1 and RXDOC_LIVE_DOCUMENT_ID is set; the
    bearer token comes from RXDOC_LIVE_TOKEN.
    """
    if os.getenv("LIVE_BACKEND", "0").lower() not in ("1", "true", "yes", "on"):
        pytest.skip("LIVE_BACKEND not enabled; set LIVE_BACKEND=1 to run this live test")
    document_id = os.getenv("RXDOC_LIVE_DOCUMENT_ID")
    if not document_id:
        pytest.skip("RXDOC_LIVE_DOCUMENT_ID is not configured")

    settings = http_settings()
    gateway = AttachmentGateway(
        backend_url(),
        token=os.getenv("RXDOC_LIVE_TOKEN"),
        timeout=settings['timeout'],
        verify=settings['verify'],
    )
    payload = retrieve_attachment({'documentId': document_id}, gateway)
    assert payload.content, "Backend returned an empty document"
    assert payload.content_type
