import os
import re
from unittest import mock

from botocore.exceptions import ClientError

from eventflow.permissions import Actor
from eventflow.services.storage_service import LocalBackend, StorageService

PDF = b'%PDF-1.4 agenda'


class TestLocalStore:
    def test_document_upload(self, app, actors):
        result = StorageService.upload(actors['sales'], PDF, 'Agenda Final.pdf')
        assert result['success'] is True
        assert re.match(r'^documents/Agenda_Final_[0-9a-f]{8}\.pdf$', result['file_id'])
        assert result['url'] == f"/uploads/{result['file_id']}"

        path = os.path.join(app.config['UPLOAD_FOLDER'], *result['file_id'].split('/'))
        with open(path, 'rb') as f:
            assert f.read() == PDF

    def test_same_name_never_overwrites(self, actors):
        first = StorageService.upload(actors['ops'], PDF, 'agenda.pdf')
        second = StorageService.upload(actors['ops'], PDF, 'agenda.pdf')
        assert first['file_id'] != second['file_id']

    def test_media_upload(self, actors):
        result = StorageService.upload(actors['ops'], b'\x00\x00\x00\x18ftypmp42', 'testimonial.MP4', 'media')
        assert result['file_id'].startswith('medias/testimonial_')
        assert result['file_id'].endswith('.mp4')

    def test_store_failure(self, actors):
        with mock.patch.object(LocalBackend, 'save', side_effect=OSError('disk full')):
            result = StorageService.upload(actors['sales'], PDF, 'agenda.pdf')
        assert result == {'success': False, 'error': 'Failed to upload file to storage',
                          'error_type': 'TRANSITION_FAILED'}


class TestChecks:
    def test_wrong_extension_for_category(self, actors):
        result = StorageService.upload(actors['sales'], b'png', 'photo.png', 'document')
        assert result['error_type'] == 'INPUT_INVALID'
        assert result['error'] == 'Only DOC, DOCX, PDF, XLS, XLSX files allowed for documents'

    def test_size_limit(self, app, actors):
        too_big = b'x' * (app.config['MAX_UPLOAD_SIZE'] + 1)
        result = StorageService.upload(actors['sales'], too_big, 'big.pdf')
        assert result['error'] == 'File size must not exceed 10MB'

    def test_empty_file(self, actors):
        assert StorageService.upload(actors['sales'], b'', 'agenda.pdf')['error'] == 'No file uploaded'

    def test_unknown_category(self, actors):
        result = StorageService.upload(actors['sales'], PDF, 'agenda.pdf', 'video')
        assert result['error'] == 'Unknown file category: video'

    def test_requires_a_known_role(self, users):
        result = StorageService.upload(Actor(99, 'Guest'), PDF, 'agenda.pdf')
        assert result['error_type'] == 'UNAUTHORIZED'


class TestS3Store:
    def use_s3(self, app, monkeypatch):
        monkeypatch.setitem(app.config, 'FILE_STORAGE_BACKEND', 's3')
        monkeypatch.setitem(app.config, 'S3_BUCKET_NAME', 'eventflow-test')
        monkeypatch.setitem(app.config, 'AWS_REGION', 'ap-south-1')

    def test_upload_goes_to_bucket(self, app, actors, monkeypatch):
        self.use_s3(app, monkeypatch)
        with mock.patch('eventflow.services.storage_service.boto3.client') as client_factory:
            result = StorageService.upload(actors['finance'], PDF, 'invoice.pdf')

        s3 = client_factory.return_value
        fileobj, bucket, key = s3.upload_fileobj.call_args[0]
        assert bucket == 'eventflow-test'
        assert key == result['file_id']
        assert fileobj.read() == PDF
        assert s3.upload_fileobj.call_args[1] == {'ExtraArgs': {'ContentType': 'application/pdf'}}
        assert result['url'] == f"https://eventflow-test.s3.ap-south-1.amazonaws.com/{key}"

    def test_client_error(self, app, actors, monkeypatch):
        self.use_s3(app, monkeypatch)
        denied = ClientError({'Error': {'Code': 'AccessDenied', 'Message': 'Access Denied'}}, 'PutObject')
        with mock.patch('eventflow.services.storage_service.boto3.client') as client_factory:
            client_factory.return_value.upload_fileobj.side_effect = denied
            result = StorageService.upload(actors['finance'], PDF, 'invoice.pdf')
        assert result['error_type'] == 'TRANSITION_FAILED'
