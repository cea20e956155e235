# src/services/marketplace_api/app.py
"""
FastAPI приложение Marketplace API (матчи, платежи, уведомления).

Endpoints:
- GET /matches - матчи пользователя (?status=PROPOSED,CONFIRMED | all)
- POST /matches - предложить матч
- PUT /matches - сменить статус и/или цену матча
- DELETE /matches?id= - отозвать PROPOSED/REJECTED матч
- GET /payments - платежи пользователя (?status=&matchId=)
- POST /payments - создать платёж по подтверждённому матчу
- PUT /payments - сменить статус платежа
- POST /payments/{id}/processor-callback - результат от процессинга
- GET /notifications - входящие уведомления
- PUT /notifications - отметить прочитанным
- DELETE /notifications?id= - удалить уведомление
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.common.constants import NotificationType, PaymentStatus, TypeMsg
from src.common.exceptions import DomainError, ValidationError
from src.common.logger import log_error, log_info, log_warning, setup_logging
from src.core.matches.service import MatchService, parse_status_filter
from src.core.notifications.service import NotificationService
from src.core.payments.service import PaymentService
from src.services.marketplace_api.dependencies import (
    CurrentIdentity,
    cleanup_dependencies,
    get_db,
    get_event_bus,
    get_match_service,
    get_notification_service,
    get_payment_service,
    init_dependencies,
    verify_processor_secret,
)
from src.shared.models.common import ErrorResponse, HealthStatus
from src.shared.models.match import MatchCreateRequest, MatchDTO, MatchUpdateRequest
from src.shared.models.notification import (
    NotificationDTO,
    NotificationListResponse,
    NotificationUpdateRequest,
)
from src.shared.models.payment import (
    PaymentCreateRequest,
    PaymentDTO,
    PaymentUpdateRequest,
    ProcessorCallbackRequest,
)

SERVICE_NAME = "marketplace_api"

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _parse_enum_filter(raw: str | None, enum_cls, field: str):
    """'' / None / 'all' → None, иначе значение перечисления."""
    if raw is None or not raw.strip() or raw.strip().lower() == "all":
        return None
    try:
        return enum_cls(raw.strip().upper())
    except ValueError:
        raise ValidationError(f"Неизвестное значение {field}: {raw}", details={field: raw})


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    from src.infra.database import close_db, init_db
    from src.infra.event_bus import close_event_bus, get_event_bus as get_bus, init_event_bus

    # Startup
    setup_logging()
    db = await init_db()

    try:
        event_bus = await init_event_bus()
    except Exception as e:
        # События best-effort: без RabbitMQ API работает, publish логирует и периодически переподключается
        await log_error(f"RabbitMQ недоступен, события публиковаться не будут: {e}")
        event_bus = get_bus()

    await init_dependencies(db, event_bus)
    await log_info(f"{SERVICE_NAME} запущен", type_msg=TypeMsg.INFO)

    yield

    # Shutdown
    await cleanup_dependencies()
    await close_event_bus()
    await close_db()


# === APP ===

app = FastAPI(
    title="Marketplace API",
    description="Жизненный цикл матчей посылок и поездок, платежи и уведомления.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# === ERROR HANDLERS ===

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Доменные ошибки → стабильный код + сообщение."""
    await log_warning(f"{request.method} {request.url.path}: {exc.error_code} {exc.message}")
    body = ErrorResponse(error_code=exc.error_code, message=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Ошибки валидации тела/параметров → 400."""
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    body = ErrorResponse(
        error_code=ValidationError.error_code,
        message="Некорректные данные запроса",
        details={"errors": errors},
    )
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Непредвиденные ошибки → 500 без внутренних деталей."""
    await log_error(f"Необработанная ошибка {request.method} {request.url.path}: {exc!r}", exc_info=True)
    body = ErrorResponse(error_code="internal_error", message="Внутренняя ошибка сервера")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body.model_dump())


# === HEALTH CHECK ===

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check(
    db=Depends(get_db),
    event_bus=Depends(get_event_bus),
) -> HealthStatus:
    """Проверка здоровья сервиса."""
    dependencies = {
        "postgres": "healthy" if await db.health_check() else "unhealthy",
        "rabbitmq": "healthy" if await event_bus.health_check() else "unhealthy",
    }
    return HealthStatus(
        service=SERVICE_NAME,
        status="healthy" if dependencies["postgres"] == "healthy" else "degraded",
        version=app.version,
        dependencies=dependencies,
    )


# === MATCHES ===

@app.get("/matches", response_model=list[MatchDTO], responses=_ERROR_RESPONSES, tags=["Matches"])
async def list_matches(
    identity: CurrentIdentity,
    service: Annotated[MatchService, Depends(get_match_service)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[MatchDTO]:
    """Матчи, где пользователь владеет посылкой или поездкой. Сначала новые."""
    statuses = parse_status_filter(status_filter)
    return await service.list_for_user(identity.user_id, statuses, limit=limit, offset=offset)


@app.post(
    "/matches",
    response_model=MatchDTO,
    status_code=status.HTTP_201_CREATED,
    responses=_ERROR_RESPONSES,
    tags=["Matches"],
    summary="Предложить матч",
)
async def propose_match(
    request: MatchCreateRequest,
    identity: CurrentIdentity,
    service: Annotated[MatchService, Depends(get_match_service)],
) -> MatchDTO:
    """
    Предложить перевозку посылки поездкой.

    Вторая сторона получает уведомление `MATCH_CREATED`.
    """
    return await service.propose(
        actor_id=identity.user_id,
        package_id=request.package_id,
        ride_id=request.ride_id,
        price=request.price,
        proposed_by_user_id=request.proposed_by_user_id,
    )


@app.put("/matches", response_model=MatchDTO, responses=_ERROR_RESPONSES, tags=["Matches"])
async def update_match(
    request: MatchUpdateRequest,
    identity: CurrentIdentity,
    service: Annotated[MatchService, Depends(get_match_service)],
) -> MatchDTO:
    """Сменить статус матча и/или цену (цена только в PROPOSED)."""
    return await service.update_match(
        actor_id=identity.user_id,
        match_id=request.id,
        new_status=request.status,
        price=request.price,
    )


@app.delete("/matches", responses=_ERROR_RESPONSES, tags=["Matches"])
async def delete_match(
    identity: CurrentIdentity,
    service: Annotated[MatchService, Depends(get_match_service)],
    match_id: Annotated[str | None, Query(alias="id")] = None,
) -> dict:
    """Отозвать предложенный или отклонённый матч."""
    await service.delete(identity.user_id, match_id)
    return {"id": match_id, "message": "Матч удалён"}


# === PAYMENTS ===

@app.get("/payments", response_model=list[PaymentDTO], responses=_ERROR_RESPONSES, tags=["Payments"])
async def list_payments(
    identity: CurrentIdentity,
    service: Annotated[PaymentService, Depends(get_payment_service)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    match_id: Annotated[str | None, Query(alias="matchId")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[PaymentDTO]:
    """Платежи, где пользователь создатель или участник матча."""
    payment_status = _parse_enum_filter(status_filter, PaymentStatus, "status")
    return await service.list_for_user(
        identity.user_id,
        status=payment_status,
        match_id=match_id or None,
        limit=limit,
        offset=offset,
    )


@app.post(
    "/payments",
    response_model=PaymentDTO,
    status_code=status.HTTP_201_CREATED,
    responses=_ERROR_RESPONSES,
    tags=["Payments"],
    summary="Создать платёж",
)
async def create_payment(
    request: PaymentCreateRequest,
    identity: CurrentIdentity,
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> PaymentDTO:
    """
    Создать платёж по подтверждённому матчу.

    По умолчанию EUR и card. Вторая сторона получает `PAYMENT_INITIATED`.
    """
    return await service.create(
        actor_id=identity.user_id,
        match_id=request.match_id,
        amount=request.amount,
        currency=request.currency,
        payment_method=request.payment_method,
    )


@app.put("/payments", response_model=PaymentDTO, responses=_ERROR_RESPONSES, tags=["Payments"])
async def update_payment(
    request: PaymentUpdateRequest,
    identity: CurrentIdentity,
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> PaymentDTO:
    """Сменить статус платежа (создатель платежа или участник матча)."""
    return await service.update_status(
        actor_id=identity.user_id,
        payment_id=request.id,
        new_status=request.status,
        transaction_id=request.transaction_id,
        payment_intent_id=request.payment_intent_id,
    )


@app.post(
    "/payments/{payment_id}/processor-callback",
    response_model=PaymentDTO,
    responses=_ERROR_RESPONSES,
    tags=["Payments"],
    dependencies=[Depends(verify_processor_secret)],
)
async def processor_callback(
    payment_id: str,
    request: ProcessorCallbackRequest,
    service: Annotated[PaymentService, Depends(get_payment_service)],
) -> PaymentDTO:
    """
    Результат от платёжного процессинга.

    Авторизация по заголовку `X-Processor-Secret`. Повтор идемпотентен.
    """
    return await service.apply_processor_result(
        payment_id,
        request.status,
        transaction_id=request.transaction_id,
        payment_intent_id=request.payment_intent_id,
    )


# === NOTIFICATIONS ===

@app.get("/notifications", response_model=NotificationListResponse, tags=["Notifications"])
async def list_notifications(
    identity: CurrentIdentity,
    service: Annotated[NotificationService, Depends(get_notification_service)],
    unread_only: Annotated[bool, Query(alias="unreadOnly")] = False,
    type_filter: Annotated[str | None, Query(alias="type")] = None,
    limit: Annotated[int | None, Query(ge=1)] = None,
) -> NotificationListResponse:
    """Входящие уведомления и число непрочитанных."""
    notification_type = _parse_enum_filter(type_filter, NotificationType, "type")
    return await service.list_for_user(
        identity.user_id,
        unread_only=unread_only,
        notification_type=notification_type,
        limit=limit,
    )


@app.put("/notifications", response_model=NotificationDTO, responses=_ERROR_RESPONSES, tags=["Notifications"])
async def update_notification(
    request: NotificationUpdateRequest,
    identity: CurrentIdentity,
    service: Annotated[NotificationService, Depends(get_notification_service)],
) -> NotificationDTO:
    """Отметить уведомление прочитанным."""
    if not request.id:
        raise ValidationError("id уведомления обязателен")
    return await service.mark_read(request.id, identity.user_id, read=request.read)


@app.delete("/notifications", responses=_ERROR_RESPONSES, tags=["Notifications"])
async def delete_notification(
    identity: CurrentIdentity,
    service: Annotated[NotificationService, Depends(get_notification_service)],
    notification_id: Annotated[str | None, Query(alias="id")] = None,
) -> dict:
    """Удалить уведомление."""
    if not notification_id:
        raise ValidationError("id уведомления обязателен")
    await service.delete(notification_id, identity.user_id)
    return {"id": notification_id, "message": "Уведомление удалено"}
