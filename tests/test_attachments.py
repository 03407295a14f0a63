import pytest

from rxdoc.models import AttachmentReference
from rxdoc.services.attachments import (
    AttachmentUnresolvable,
    collect_attachments,
    format_file_size,
    legacy_fallback_url,
    normalize_attachment,
    resolve_attachment,
    strip_backend_prefix,
)

BACKEND = 'http://api.local'


def test_document_id_goes_through_authenticated_api():
    loc = resolve_attachment({'documentId': '507f191e810c19729de860ea'}, backend_url=BACKEND)
    assert loc.is_api is True
    assert '507f191e810c19729de860ea' in loc.url
    assert loc.url == BACKEND + '/api/documents/507f191e810c19729de860ea/download'
    assert loc.api_path == '/api/documents/507f191e810c19729de860ea/download'


def test_absolute_path_is_used_verbatim():
    loc = resolve_attachment({'path': 'https://ex.com/f.pdf'}, backend_url=BACKEND)
    assert loc.is_api is False
    assert loc.url == 'https://ex.com/f.pdf'
    assert loc.api_path is None


def test_static_path_wins_over_document_id():
    loc = resolve_attachment({'documentId': 'd1', 'path': 'uploads/a.pdf'}, backend_url=BACKEND)
    assert loc.url == BACKEND + '/uploads/a.pdf'
    assert loc.is_api is False


def test_bare_string_is_promoted_to_path_and_filename():
    ref = normalize_attachment('uploads/reports/a b.pdf')
    assert ref.path == 'uploads/reports/a b.pdf'
    assert ref.filename == 'a b.pdf'
    loc = resolve_attachment('uploads/reports/a b.pdf', backend_url=BACKEND + '/')
    assert loc.url == BACKEND + '/uploads/reports/a%20b.pdf'
    assert loc.is_api is False


def test_url_field_is_treated_as_path():
    assert normalize_attachment({'url': 'uploads/x.pdf'}).path == 'uploads/x.pdf'


@pytest.mark.parametrize('filename, url, is_api', [
    ('/api/documents/9/download', BACKEND + '/api/documents/9/download', True),
    ('api/files/scan 1.pdf', BACKEND + '/api/files/scan%201.pdf', True),
    ('/api/reports/x.pdf', BACKEND + '/api/reports/x.pdf', False),
    ('https://cdn.example.org/y.pdf', 'https://cdn.example.org/y.pdf', False),
    ('report.pdf', BACKEND + '/api/files/report.pdf', False),
])
def test_filename_rules(filename, url, is_api):
    loc = resolve_attachment({'filename': filename}, backend_url=BACKEND)
    assert loc.url == url
    assert loc.is_api is is_api


def test_literal_null_document_id_is_ignored():
    loc = resolve_attachment({'documentId': 'null', 'filename': 'r.pdf'}, backend_url=BACKEND)
    assert loc.is_api is False
    assert loc.url == BACKEND + '/api/files/r.pdf'


def test_filename_with_directories_doubles_as_path():
    ref = normalize_attachment({'fileName': 'uploads/history/r.pdf', 'fileSize': '2048'})
    assert ref.path == 'uploads/history/r.pdf'
    assert ref.size == 2048


def test_document_id_beats_directory_style_filename():
    ref = normalize_attachment({'documentId': '507f191e810c19729de860ea', 'filename': 'uploads/r.pdf'})
    assert ref.path is None
    loc = resolve_attachment({'documentId': '507f191e810c19729de860ea', 'filename': 'uploads/r.pdf'},
                             backend_url=BACKEND)
    assert loc.is_api is True
    assert loc.url == BACKEND + '/api/documents/507f191e810c19729de860ea/download'
    assert legacy_fallback_url({'documentId': 'd1', 'filename': 'uploads/r.pdf'}, backend_url=BACKEND) == \
        BACKEND + '/api/files/uploads/r.pdf'


@pytest.mark.parametrize('reference', [None, '', '   ', {}, {'size': 10}, {'documentId': 'undefined'}, 42])
def test_unresolvable_references(reference):
    assert normalize_attachment(reference) is None
    with pytest.raises(AttachmentUnresolvable) as exc:
        resolve_attachment(reference, backend_url=BACKEND)
    assert exc.value.user_message == 'File not available'


def test_reference_objects_pass_through():
    ref = AttachmentReference(document_id='abc')
    assert normalize_attachment(ref) is ref
    assert normalize_attachment(AttachmentReference()) is None


def test_collect_attachments_walks_every_container_in_order():
    history = {
        'attachments': ['a.pdf', {'fileName': 'b.pdf', 'size': '2048'}, {}],
        'medicalHistoryDocs': {'documents': [{'documentId': 'd9', 'originalName': 'Scan'}]},
    }
    refs = collect_attachments(history)
    assert [r.label for r in refs] == ['a.pdf', 'b.pdf', 'Scan']
    assert refs[1].size == 2048
    assert refs[2].document_id == 'd9'


def test_collect_attachments_report_file_fallback():
    refs = collect_attachments({'reportFile': 'uploads/r.pdf'})
    assert len(refs) == 1
    assert refs[0].label == 'Medical Report'
    assert refs[0].path == 'uploads/r.pdf'
    assert collect_attachments({'reportFile': 'r.pdf', 'files': ['x.pdf']})[0].label == 'x.pdf'
    assert collect_attachments(None) == []


def test_format_file_size():
    assert format_file_size(None) == ''
    assert format_file_size(0) == ''
    assert format_file_size(512) == '512 B'
    assert format_file_size(1536) == '1.50 KB'
    assert format_file_size(3 * 1024 * 1024) == '3.00 MB'
    assert format_file_size('2048') == '2.00 KB'


def test_legacy_fallback_url():
    assert legacy_fallback_url({'documentId': 'd1', 'filename': 'r.pdf'}, backend_url=BACKEND) == BACKEND + '/api/files/r.pdf'
    assert legacy_fallback_url({'documentId': 'd1'}, backend_url=BACKEND) is None
    assert legacy_fallback_url({'path': 'uploads/x.pdf'}, backend_url=BACKEND) == BACKEND + '/uploads/x.pdf'
    assert legacy_fallback_url({'filename': '/static/x.pdf'}, backend_url=BACKEND) == BACKEND + '/static/x.pdf'


def test_strip_backend_prefix():
    assert strip_backend_prefix(BACKEND + '/uploads/x.pdf', BACKEND) == '/uploads/x.pdf'
    assert strip_backend_prefix('http://api.local2/x.pdf', BACKEND) is None
    assert strip_backend_prefix('https://ex.com/x.pdf', BACKEND) is None
