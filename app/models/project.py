"""
Project models.
Only the parts that quota enforcement and file cleanup need: a project,
its uploaded files and the reports generated from it.
"""
import enum
import uuid

from app.extensions import db
from app.models.subscription import enum_values
from app.utils.dates import utcnow, isoformat_utc


class ProjectStatus(str, enum.Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'


class ReportType(str, enum.Enum):
    ANALYSIS = 'analysis'
    PRESENTATION = 'presentation'


class Project(db.Model):
    """Company analysis request."""

    __tablename__ = 'projects'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(
        db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True
    )
    company_name = db.Column(db.String(200), nullable=False)
    business_number = db.Column(db.String(20), nullable=False, default='')
    representative = db.Column(db.String(100), nullable=False)
    industry = db.Column(db.String(100), nullable=True)
    status = db.Column(
        db.Enum(ProjectStatus, name='project_status', values_callable=enum_values),
        nullable=False,
        default=ProjectStatus.PENDING,
    )

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=utcnow)

    user = db.relationship('User', back_populates='projects')
    files = db.relationship(
        'ProjectFile', back_populates='project', cascade='all, delete-orphan',
        order_by='ProjectFile.created_at',
    )
    reports = db.relationship(
        'Report', back_populates='project', cascade='all, delete-orphan',
        order_by='Report.created_at',
    )

    def __repr__(self):
        return f'<Project {self.id} {self.company_name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'companyName': self.company_name,
            'businessNumber': self.business_number,
            'representative': self.representative,
            'industry': self.industry,
            'status': self.status.value,
            'fileCount': len(self.files),
            'createdAt': isoformat_utc(self.created_at),
        }


class ProjectFile(db.Model):
    """Document uploaded to a project; the bytes live in the blob store."""

    __tablename__ = 'project_files'

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36), db.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True
    )
    filename = db.Column(db.String(255), nullable=False)
    storage_key = db.Column(db.String(512), nullable=False)
    content_type = db.Column(db.String(100), nullable=True)
    size = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    project = db.relationship('Project', back_populates='files')

    def to_dict(self, url=None):
        return {
            'id': self.id,
            'filename': self.filename,
            'contentType': self.content_type,
            'size': self.size,
            'url': url,
            'createdAt': isoformat_utc(self.created_at),
        }


class Report(db.Model):
    __tablename__ = 'reports'

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.String(36), db.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True
    )
    report_type = db.Column(
        db.Enum(ReportType, name='report_type', values_callable=enum_values),
        nullable=False,
        default=ReportType.ANALYSIS,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    project = db.relationship('Project', back_populates='reports')

    def to_dict(self):
        return {
            'id': self.id,
            'projectId': self.project_id,
            'reportType': self.report_type.value,
            'createdAt': isoformat_utc(self.created_at),
        }
