# discount_wheel/main.py
import logging
import random
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from discount_wheel.config import Settings, configure_logging, load_settings
from discount_wheel.coordinator import SpinCoordinator
from discount_wheel.errors import (
    InfrastructureError,
    InvalidCustomerError,
    SpinError,
    ValidationError,
    WheelError,
)
from discount_wheel.ledger import ClaimRecord, SqlClaimLedger
from discount_wheel.models import create_db_engine, create_session_factory, ensure_schema
from discount_wheel.notify import TelegramNotifier
from discount_wheel.segments import Segment, SegmentSet, SegmentValidator
from discount_wheel.selection import SelectionEngine
from discount_wheel.store import ConfigurationStore, CouponCatalog

logger = logging.getLogger(__name__)


# =====================
# SCHEMAS
# =====================

class SegmentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str
    reward: str
    coupon_code: str = Field(alias="couponCode")
    probability: float
    color: str = "#ffffff"
    active: bool = True
    category: Optional[str] = None

    def to_segment(self) -> Segment:
        return Segment(
            label=self.label,
            reward=self.reward,
            coupon_code=self.coupon_code,
            probability=self.probability,
            color=self.color,
            active=self.active,
            category=self.category or None,
        )

    @classmethod
    def from_segment(cls, segment: Segment) -> "SegmentModel":
        return cls(**segment.to_dict())


class ConfigurationIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    segments: list[SegmentModel]
    updated_by: str = Field("admin", alias="updatedBy")


class ConfigurationOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    segments: list[SegmentModel]
    updated_by: str = Field(alias="updatedBy")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    @classmethod
    def from_set(cls, segment_set: SegmentSet) -> "ConfigurationOut":
        return cls(
            segments=[SegmentModel.from_segment(s) for s in segment_set],
            updated_by=segment_set.updated_by,
            updated_at=segment_set.updated_at,
        )


class PublicSegmentOut(BaseModel):
    label: str
    reward: str
    color: str
    category: Optional[str] = None


class ClaimOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(alias="customerId")
    segment_label: str = Field(alias="segmentLabel")
    coupon_code: str = Field(alias="couponCode")
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_record(cls, record: ClaimRecord) -> "ClaimOut":
        return cls(
            customer_id=record.customer_id,
            segment_label=record.segment_label,
            coupon_code=record.coupon_code,
            created_at=record.created_at,
        )


class ClaimStatusOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_claimed: bool = Field(alias="hasClaimed")
    claim: Optional[ClaimOut] = None


class SpinRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(alias="customerId")
    customer_category: Optional[str] = Field(None, alias="customerCategory")


class SpinResponse(BaseModel):
    won: SegmentModel
    claim: ClaimOut


# =====================
# APP
# =====================

STATUS_BY_ERROR = (
    (ValidationError, 400),
    (SpinError, 409),
    (InfrastructureError, 503),
)


def create_app(settings: Optional[Settings] = None, rng: Optional[random.Random] = None) -> FastAPI:
    settings = settings or load_settings()

    engine = create_db_engine(settings.database_url, settings.db_busy_timeout)
    session_factory = create_session_factory(engine)
    catalog = CouponCatalog(session_factory)
    store = ConfigurationStore(session_factory, SegmentValidator(catalog.coupon_exists))
    coordinator = SpinCoordinator(
        store=store,
        engine=SelectionEngine(rng=rng, category_match=settings.category_match),
        ledger=SqlClaimLedger(session_factory),
    )

    app = FastAPI(title="Discount Wheel")
    app.state.settings = settings
    app.state.catalog = catalog
    app.state.store = store
    app.state.coordinator = coordinator
    app.state.notifier = TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_id)

    @app.on_event("startup")
    async def _startup():
        configure_logging(settings.log_level)
        ensure_schema(engine)
        catalog.seed()

    @app.exception_handler(WheelError)
    async def _wheel_error(request: Request, exc: WheelError):
        status_code = 500
        for cls, code in STATUS_BY_ERROR:
            if isinstance(exc, cls):
                status_code = code
                break
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    # =====================
    # API
    # =====================

    @app.get("/api/discount-wheel", response_model=ConfigurationOut)
    def get_configuration(request: Request):
        return ConfigurationOut.from_set(request.app.state.store.load_configuration())

    @app.put("/api/discount-wheel", response_model=ConfigurationOut)
    def put_configuration(body: ConfigurationIn, request: Request):
        segments = [s.to_segment() for s in body.segments]
        try:
            committed = request.app.state.store.save_configuration(segments, updated_by=body.updated_by)
        except ValidationError as e:
            logger.info("Wheel configuration rejected: %s", e.message)
            raise
        return ConfigurationOut.from_set(committed)

    @app.get("/api/discount-wheel/segments", response_model=list[PublicSegmentOut])
    def eligible_segments(request: Request, customer_category: Optional[str] = Query(None, alias="customerCategory")):
        coordinator = request.app.state.coordinator
        snapshot = request.app.state.store.load_configuration()
        return [
            PublicSegmentOut(label=s.label, reward=s.reward, color=s.color, category=s.category)
            for s in coordinator.engine.eligible(snapshot.segments, customer_category)
        ]

    @app.post("/api/discount-wheel/spin", response_model=SpinResponse)
    async def spin(req: SpinRequest, request: Request):
        customer_id = req.customer_id.strip()
        if not customer_id:
            raise InvalidCustomerError()

        coordinator = request.app.state.coordinator
        result = await run_in_threadpool(coordinator.spin, customer_id, req.customer_category or None)

        await request.app.state.notifier.send_win(
            customer_id, result.segment.label, result.segment.coupon_code
        )

        return SpinResponse(
            won=SegmentModel.from_segment(result.segment),
            claim=ClaimOut.from_record(result.claim),
        )

    @app.get("/api/discount-wheel/claims/{customer_id}", response_model=ClaimStatusOut)
    def claim_status(customer_id: str, request: Request):
        record = request.app.state.coordinator.claim_status(customer_id.strip())
        return ClaimStatusOut(
            has_claimed=record is not None,
            claim=ClaimOut.from_record(record) if record else None,
        )

    return app


app = create_app()
