# discount_wheel/models.py
from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

CONFIGURATION_ROW_ID = 1


class WheelConfiguration(Base):
    __tablename__ = "wheel_configuration"

    id = Column(Integer, primary_key=True)
    segments = Column(JSON, nullable=False)
    updated_by = Column(String, nullable=False, default="system")
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class WheelClaim(Base):
    __tablename__ = "wheel_claims"

    # primary key is the one-spin-per-customer guarantee
    customer_id = Column(String, primary_key=True, index=True)
    segment_label = Column(String, nullable=False)
    coupon_code = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class Coupon(Base):
    __tablename__ = "coupons"

    code = Column(String, primary_key=True)
    description = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


def create_db_engine(database_url: str, busy_timeout: float = 5.0) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # bounded wait on a locked database instead of blocking forever
        connect_args = {"check_same_thread": False, "timeout": busy_timeout}

    return create_engine(database_url, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine)


def ensure_schema(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)
