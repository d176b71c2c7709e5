"""
Tables written by the SQL dump importer.

Column sets mirror the legacy application's schema so that a dump taken
from it can be replayed here without any column renames.
"""
import logging

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.engine import Engine

from app.db.session import Base

logger = logging.getLogger(__name__)


class Customer(Base):
    __tablename__ = "customers"

    customer_id = Column(String(255), primary_key=True)
    customer_password = Column(String(255), nullable=True)
    customer_name = Column(String(255), nullable=False)
    referral_source = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True, index=True)
    customer_address = Column(String(255), nullable=True)
    customer_phone = Column(String(255), nullable=False)
    customer_ktp_no = Column(String(255), nullable=True)
    customer_ktp_picture = Column(String(255), nullable=True)
    password_reset = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)


class Subscription(Base):
    __tablename__ = "subscriptions"

    subscription_id = Column(String(255), primary_key=True)
    subscription_password = Column(String(255), nullable=False)
    customer_id = Column(
        String(255),
        ForeignKey("customers.customer_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    serv_id = Column(String(255), nullable=False)
    group = Column(String(255), nullable=False)
    created_by = Column(String(255), nullable=False)
    subscription_start_date = Column(String(255), nullable=True)
    subscription_billing_cycle = Column(String(255), nullable=True)
    subscription_price = Column(String(255), nullable=True)
    subscription_address = Column(String(255), nullable=True)
    subscription_status = Column(String(255), nullable=True)
    subscription_maps = Column(String(255), nullable=True)
    subscription_home_photo = Column(String(255), nullable=True)
    subscription_form_scan = Column(String(255), nullable=True)
    subscription_description = Column(String(255), nullable=True)
    cpe_type = Column(String(255), nullable=True)
    cpe_serial = Column(String(255), nullable=True)
    cpe_picture = Column(String(255), nullable=True)
    cpe_site = Column(String(255), nullable=True)
    cpe_mac = Column(String(255), nullable=True)
    is_cpe_rent = Column(Boolean, nullable=True)
    dismantle_at = Column(DateTime, nullable=True)
    suspend_at = Column(DateTime, nullable=True)
    installed_by = Column(String(255), nullable=True)
    subscription_test_result = Column(String(255), nullable=True)
    odp_distance = Column(String(255), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    installed_at = Column(DateTime, nullable=True)
    index_month = Column(Integer, nullable=False, default=0)
    attenuation_photo = Column(String(255), nullable=True)
    ip_address = Column(String(255), nullable=True)
    handle_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)


class Maintenance(Base):
    __tablename__ = "maintenances"

    ticket_id = Column(String(255), primary_key=True)
    subscription_id = Column(String(255), nullable=True, index=True)
    customer_id = Column(String(255), nullable=True, index=True)
    subject_problem = Column(Text, nullable=True)
    customer_report = Column(Text, nullable=True)
    technician_update_desc = Column(Text, nullable=True)
    work_by = Column(String(255), nullable=True)
    open_by = Column(String(255), nullable=True)
    open_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    created_by = Column(String(255), nullable=True)
    ticket_close_date = Column(DateTime, nullable=True)
    status = Column(String(255), nullable=True, index=True)
    picture_from_customer = Column(String(255), nullable=True)
    picture_from_technician = Column(String(255), nullable=True)
    handle_by = Column(String(255), nullable=True)
    handle_by_team = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=True)


def create_import_tables(engine: Engine) -> None:
    """Create the customer, subscription and maintenance tables if missing."""
    Base.metadata.create_all(
        engine,
        tables=[Customer.__table__, Subscription.__table__, Maintenance.__table__],
    )
    logger.info("Import target tables ready (customers, subscriptions, maintenances)")
