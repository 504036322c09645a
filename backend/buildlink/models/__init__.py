"""SQLAlchemy 모델 패키지 초기화 모듈입니다."""

from buildlink.models.user import User, PaymentAccount
from buildlink.models.consultation import Consultation
from buildlink.models.project import Project, ProjectDocument
from buildlink.models.milestone import Milestone, MilestoneEvidence
from buildlink.models.platform_setting import PlatformFeeSetting
from buildlink.models.escrow import Escrow, PaymentIntent, Transaction
from buildlink.models.dispute import Dispute
from buildlink.models.document_request import DocumentUpdateRequest
from buildlink.models.audit import AuditEvent
from buildlink.models.notification import Notification

__all__ = [
    "User", "PaymentAccount",
    "Consultation",
    "Project", "ProjectDocument",
    "Milestone", "MilestoneEvidence",
    "PlatformFeeSetting",
    "Escrow", "PaymentIntent", "Transaction",
    "Dispute",
    "DocumentUpdateRequest",
    "AuditEvent",
    "Notification",
]
