"""
API project endpoints: quota-gated creation, uploads and presentations.
"""
import mimetypes

from flask import request, jsonify, send_file

from app.blueprints.api import api_bp
from app.blueprints.api.decorators import jwt_required
from app.blueprints.api.helpers import load_json, paginate_query
from app.blueprints.api.schemas import ProjectCreateSchema
from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.extensions import limiter
from app.models.project import Project
from app.services.project_service import ProjectService
from app.services.storage import LocalFilesystemBlobStore, get_blob_store


@api_bp.route('/projects', methods=['GET'])
@jwt_required
def api_list_projects():
    query = (
        Project.query
        .filter_by(user_id=request.api_user.id)
        .order_by(Project.created_at.desc())
    )
    return jsonify(paginate_query(query, lambda p: p.to_dict(), key='projects')), 200


@api_bp.route('/projects', methods=['POST'])
@limiter.limit('30 per minute')
@jwt_required
def api_create_project():
    """Create a project if this month's quota allows it.

    Request body:
        {"companyName": "...", "representative": "...",
         "businessNumber": "...", "industry": "..."}

    Returns 403 {"error", "code", "limit", "current"} when the quota is used up.
    """
    data = load_json(ProjectCreateSchema())
    project = ProjectService.create_project(
        request.api_user,
        company_name=data['company_name'],
        representative=data['representative'],
        business_number=data['business_number'],
        industry=data['industry'],
    )
    return jsonify(project.to_dict()), 201


@api_bp.route('/projects/<project_id>', methods=['GET'])
@jwt_required
def api_get_project(project_id):
    project = ProjectService.get_owned(request.api_user, project_id)
    body = project.to_dict()
    body['files'] = [f.to_dict(url=ProjectService.file_url(f)) for f in project.files]
    body['reports'] = [r.to_dict() for r in project.reports]
    return jsonify(body), 200


@api_bp.route('/projects/<project_id>', methods=['DELETE'])
@jwt_required
def api_delete_project(project_id):
    """Delete the project and its files. Monthly usage is not restored."""
    ProjectService.delete_project(request.api_user, project_id)
    return jsonify({'success': True}), 200


@api_bp.route('/projects/<project_id>/files', methods=['POST'])
@jwt_required
def api_upload_project_files(project_id):
    """Multipart upload; field name ``files`` (repeatable)."""
    uploads = request.files.getlist('files')
    if not uploads:
        raise ValidationError('파일이 없습니다', code='file_required')

    records = [ProjectService.add_file(request.api_user, project_id, f) for f in uploads]
    return jsonify({
        'files': [r.to_dict(url=ProjectService.file_url(r)) for r in records],
    }), 201


@api_bp.route('/projects/<project_id>/presentations', methods=['POST'])
@jwt_required
def api_create_presentation(project_id):
    """Create a presentation report if this month's quota allows it."""
    report = ProjectService.create_presentation(request.api_user, project_id)
    return jsonify(report.to_dict()), 201


@api_bp.route('/uploads/<path:key>', methods=['GET'])
@jwt_required
def api_serve_upload(key):
    """Serve a locally stored blob to its owner (or an admin)."""
    store = get_blob_store()
    if not isinstance(store, LocalFilesystemBlobStore):
        raise NotFoundError('파일을 찾을 수 없습니다')

    user = request.api_user
    if not key.startswith(f'{user.id}/') and not user.is_admin:
        raise AuthorizationError()

    path = store.path_for(key)
    try:
        return send_file(path, mimetype=mimetypes.guess_type(path)[0] or 'application/octet-stream')
    except FileNotFoundError:
        raise NotFoundError('파일을 찾을 수 없습니다')
