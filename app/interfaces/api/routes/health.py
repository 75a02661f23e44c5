from fastapi import APIRouter, Depends

from app.application.services import NotificationServices
from app.infrastructure.channels import LogOnlyChannelAdapter
from app.interfaces.api.dependencies import get_services
from app.interfaces.api.schemas import HealthRead
from app.utils import now_in_app_timezone

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthRead)
async def health(services: NotificationServices = Depends(get_services)) -> HealthRead:
    """Report liveness and which delivery features are wired to a real transport."""

    features = ["in_app", "realtime", "scheduling", "bulk"]
    features.extend(
        channel.value
        for channel, adapter in services.adapters.items()
        if not isinstance(adapter, LogOnlyChannelAdapter)
    )
    return HealthRead(
        status="ok",
        service="notification-service",
        timestamp=now_in_app_timezone(),
        features=features,
    )
