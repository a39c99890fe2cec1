"""
Tests for quota-gated project endpoints and uploads.
"""
import io
import os
import pathlib
import pytest
from unittest.mock import patch

from app.errors import InfrastructureError
from app.extensions import db
from app.models.policy import UsageKind
from app.models.project import Project, ProjectFile
from app.models.subscription import SubscriptionPlan
from app.services.project_service import ProjectService, QuotaExceeded
from app.services.usage_service import UsageService
from app.services.storage import get_blob_store

from tests.conftest import auth_headers

PROJECT = {'companyName': '(주)테스트', 'representative': '김대표', 'businessNumber': '123-45-67890'}


def _create(client, headers):
    return client.post('/api/projects', json=PROJECT, headers=headers)


@pytest.fixture
def project(user, policies):
    return ProjectService.create_project(user, '(주)테스트', '김대표')


class TestProjectQuota:

    def test_create_counts_usage(self, client, user, user_headers, policies):
        resp = _create(client, user_headers)

        assert resp.status_code == 201
        assert resp.get_json()['companyName'] == '(주)테스트'
        assert UsageService.get_count(user.id, UsageKind.PROJECT) == 1

    def test_free_plan_limit(self, client, user, user_headers, policies):
        for _ in range(3):
            assert _create(client, user_headers).status_code == 201

        resp = _create(client, user_headers)

        assert resp.status_code == 403
        assert resp.get_json() == {
            'error': '이번 달 프로젝트 생성 제한(3개)을 초과했습니다. 현재 3개 생성됨.',
            'code': 'quota_exceeded',
            'limit': 3,
            'current': 3,
        }
        assert Project.query.filter_by(user_id=user.id).count() == 3

    def test_deleting_does_not_refund(self, client, user, user_headers, policies):
        ids = [_create(client, user_headers).get_json()['id'] for _ in range(3)]

        client.delete(f'/api/projects/{ids[0]}', headers=user_headers)

        assert _create(client, user_headers).status_code == 403
        assert UsageService.get_count(user.id, UsageKind.PROJECT) == 3

    def test_failed_insert_does_not_consume_quota(self, user, policies):
        with patch('app.services.project_service.UsageService.increment',
                   side_effect=InfrastructureError()):
            with pytest.raises(InfrastructureError):
                ProjectService.create_project(user, 'A', 'B')

        assert UsageService.get_count(user.id, UsageKind.PROJECT) == 0
        assert Project.query.count() == 0

    def test_upgraded_plan_gets_higher_limit(self, client, user, user_headers, policies):
        user.subscription.plan = SubscriptionPlan.PRO
        db.session.commit()
        for _ in range(3):
            UsageService.increment(user.id, UsageKind.PROJECT)
        db.session.commit()

        assert _create(client, user_headers).status_code == 201

    def test_admin_not_limited(self, client, admin_user, admin_headers, policies):
        for _ in range(12):
            UsageService.increment(admin_user.id, UsageKind.PROJECT)
        db.session.commit()

        assert _create(client, admin_headers).status_code == 201

    def test_validation(self, client, user_headers, policies):
        resp = client.post('/api/projects', json={'representative': '김대표'}, headers=user_headers)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == '회사명을 입력해주세요'


class TestPresentations:

    def test_free_plan_cannot_create(self, client, user_headers, project):
        resp = client.post(f'/api/projects/{project.id}/presentations', headers=user_headers)

        assert resp.status_code == 403
        assert resp.get_json()['limit'] == 0

    def test_pro_plan_one_per_month(self, client, user, user_headers, project):
        user.subscription.plan = SubscriptionPlan.PRO
        db.session.commit()

        first = client.post(f'/api/projects/{project.id}/presentations', headers=user_headers)
        second = client.post(f'/api/projects/{project.id}/presentations', headers=user_headers)

        assert first.status_code == 201
        assert first.get_json()['reportType'] == 'presentation'
        assert second.status_code == 403
        assert UsageService.get_count(user.id, UsageKind.PRESENTATION) == 1
        assert UsageService.get_count(user.id, UsageKind.PROJECT) == 1

    def test_quota_exceeded_carries_result(self, user, project):
        with pytest.raises(QuotaExceeded) as exc:
            ProjectService.create_presentation(user, project.id)
        assert exc.value.to_dict()['current'] == 0


class TestProjectAccess:

    def test_list_only_own(self, client, user, other_user, user_headers, policies, project):
        ProjectService.create_project(other_user, 'Other', 'Someone')

        body = client.get('/api/projects', headers=user_headers).get_json()

        assert body['pagination']['total'] == 1
        assert body['projects'][0]['id'] == project.id

    def test_other_users_project_is_not_found(self, client, other_user, project):
        resp = client.get(f'/api/projects/{project.id}', headers=auth_headers(other_user))
        assert resp.status_code == 404
        assert resp.get_json()['code'] == 'project_not_found'


class TestUploads:

    def _upload(self, client, headers, project_id, name='재무제표.pdf', data=b'%PDF-1.4 test'):
        return client.post(
            f'/api/projects/{project_id}/files',
            data={'files': (io.BytesIO(data), name)},
            headers=headers,
            content_type='multipart/form-data',
        )

    def test_upload_and_fetch(self, client, user, user_headers, project):
        resp = self._upload(client, user_headers, project.id)

        assert resp.status_code == 201
        uploaded = resp.get_json()['files'][0]
        assert uploaded['size'] == len(b'%PDF-1.4 test')
        record = ProjectFile.query.one()
        assert record.storage_key.startswith(f'{user.id}/{project.id}/')
        assert record.storage_key.endswith('.pdf')

        fetched = client.get(uploaded['url'], headers=user_headers)
        assert fetched.status_code == 200
        assert fetched.data == b'%PDF-1.4 test'

    def test_other_user_cannot_fetch(self, client, user_headers, other_user, project):
        url = self._upload(client, user_headers, project.id).get_json()['files'][0]['url']

        resp = client.get(url, headers=auth_headers(other_user))

        assert resp.status_code == 403

    def test_upload_without_files(self, client, user_headers, project):
        resp = client.post(f'/api/projects/{project.id}/files', headers=user_headers)
        assert resp.status_code == 400
        assert resp.get_json()['code'] == 'file_required'

    def test_failed_record_removes_blob(self, client, user_headers, project):
        with patch('app.services.project_service.atomic', side_effect=InfrastructureError()):
            resp = self._upload(client, user_headers, project.id)

        assert resp.status_code == 500
        store = get_blob_store()
        assert not any(path.is_file() for path in pathlib.Path(store.root).rglob('*'))

    def test_delete_project_removes_blobs(self, client, user_headers, project):
        self._upload(client, user_headers, project.id)
        project_id = project.id
        key = ProjectFile.query.one().storage_key
        path = get_blob_store().path_for(key)

        resp = client.delete(f"/api/projects/{project_id}", headers=user_headers)

        assert resp.status_code == 200
        assert db.session.get(Project, project_id) is None
        assert not os.path.exists(path)
