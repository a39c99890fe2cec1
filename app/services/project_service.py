"""
Project service.
Quota-gated project and presentation creation, uploads and deletion.
"""
import os
import time
import uuid

from flask import current_app

from app.errors import NotFoundError, ServiceError, ValidationError
from app.extensions import db
from app.models.policy import UsageKind
from app.models.project import Project, ProjectFile, Report, ReportType
from app.models.user import User
from app.services.persistence import atomic
from app.services.policy_service import PolicyService
from app.services.storage import get_blob_store
from app.services.subscription_service import SubscriptionService
from app.services.usage_service import UsageService


class QuotaExceeded(ServiceError):
    """Quota denial surfaced to the HTTP caller with its limit and usage."""
    status_code = 403
    code = 'quota_exceeded'

    def __init__(self, result):
        super().__init__(
            result.message,
            details={'limit': result.limit, 'current': result.current},
        )


class ProjectService:

    @staticmethod
    def get_owned(user: User, project_id: str) -> Project:
        project = Project.query.filter_by(id=project_id, user_id=user.id).first()
        if project is None:
            raise NotFoundError('프로젝트를 찾을 수 없습니다', code='project_not_found')
        return project

    @staticmethod
    def create_project(user: User, company_name, representative,
                       business_number=None, industry=None) -> Project:
        """Create a project if this month's project quota allows it.

        The usage counter is incremented in the same transaction as the
        insert, so a failed insert never consumes quota.
        """
        plan = SubscriptionService.effective_plan(user)
        result = PolicyService.check_project_creation_policy(user.id, user.role, plan)
        if not result.allowed:
            current_app.logger.info(
                f'Project creation denied for user {user.id}: {result.current}/{result.limit}'
            )
            raise QuotaExceeded(result)

        project = Project(
            user_id=user.id,
            company_name=company_name,
            representative=representative,
            business_number=business_number or '',
            industry=industry or None,
        )
        with atomic():
            db.session.add(project)
            UsageService.increment(user.id, UsageKind.PROJECT)

        current_app.logger.info(f'Project {project.id} created by user {user.id}')
        return project

    @staticmethod
    def create_presentation(user: User, project_id: str) -> Report:
        """Record a presentation report if the presentation quota allows it."""
        project = ProjectService.get_owned(user, project_id)

        plan = SubscriptionService.effective_plan(user)
        result = PolicyService.check_presentation_creation_policy(user.id, user.role, plan)
        if not result.allowed:
            raise QuotaExceeded(result)

        report = Report(project_id=project.id, report_type=ReportType.PRESENTATION)
        with atomic():
            db.session.add(report)
            UsageService.increment(user.id, UsageKind.PRESENTATION)

        current_app.logger.info(f'Presentation {report.id} created for project {project.id}')
        return report

    @staticmethod
    def add_file(user: User, project_id: str, file_storage) -> ProjectFile:
        """Store an uploaded file under ``<user>/<project>/<ms>_<uuid><ext>``."""
        project = ProjectService.get_owned(user, project_id)
        if file_storage is None or not file_storage.filename:
            raise ValidationError('파일이 없습니다', code='file_required')

        ext = os.path.splitext(file_storage.filename)[1].lower()
        key = f'{user.id}/{project.id}/{int(time.time() * 1000)}_{uuid.uuid4().hex}{ext}'
        data = file_storage.read()
        content_type = file_storage.mimetype or 'application/octet-stream'

        store = get_blob_store()
        store.upload(key, data, content_type)

        record = ProjectFile(
            project_id=project.id,
            filename=file_storage.filename,
            storage_key=key,
            content_type=content_type,
            size=len(data),
        )
        try:
            with atomic():
                db.session.add(record)
        except ServiceError:
            store.delete(key)
            raise
        return record

    @staticmethod
    def file_url(record: ProjectFile) -> str:
        return get_blob_store().get_url(record.storage_key)

    @staticmethod
    def delete_project(user: User, project_id: str) -> None:
        """Delete the project and its stored files. Usage is not refunded."""
        project = ProjectService.get_owned(user, project_id)
        keys = [f.storage_key for f in project.files]

        with atomic():
            db.session.delete(project)

        store = get_blob_store()
        for key in keys:
            try:
                store.delete(key)
            except ServiceError:
                current_app.logger.warning(f'Orphaned blob after project delete: {key}')

        current_app.logger.info(f'Project {project_id} deleted by user {user.id}')
