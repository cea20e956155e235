# src/shared/models/__init__.py
"""
Общие DTO и Pydantic-модели для API и репозиториев.
"""

from src.shared.models.marketplace import (
    PackageDTO,
    RideDTO,
)
from src.shared.models.match import (
    MatchDTO,
    MatchCreateRequest,
    MatchUpdateRequest,
)
from src.shared.models.payment import (
    PaymentDTO,
    PaymentCreateRequest,
    PaymentUpdateRequest,
    ProcessorCallbackRequest,
)
from src.shared.models.notification import (
    NotificationDTO,
    NotificationListResponse,
    NotificationUpdateRequest,
)
from src.shared.models.common import (
    CamelModel,
    ErrorResponse,
    HealthStatus,
)

__all__ = [
    # Marketplace
    "PackageDTO",
    "RideDTO",
    # Match
    "MatchDTO",
    "MatchCreateRequest",
    "MatchUpdateRequest",
    # Payment
    "PaymentDTO",
    "PaymentCreateRequest",
    "PaymentUpdateRequest",
    "ProcessorCallbackRequest",
    # Notification
    "NotificationDTO",
    "NotificationListResponse",
    "NotificationUpdateRequest",
    # Common
    "CamelModel",
    "ErrorResponse",
    "HealthStatus",
]
