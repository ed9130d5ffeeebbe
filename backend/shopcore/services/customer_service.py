# Overview: Customer profile upsert and admin customer views.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, Order
from ..validation import CustomerInfo
from . import permission_service


def normalize_email(email: str | None) -> str:
    """Key form of an email address: stripped and lowercased."""
    return (email or "").strip().lower()


def upsert_customer_profile(
    *,
    org_id: int,
    customer_info: CustomerInfo,
    order_total_cents: int,
    now: datetime,
) -> Customer:
    """
    Fold one committed order into the (org, email) customer profile.

    Existing profile: total_orders += 1, total_spend += order total,
    last_seen_at = now, name replaced, phone/address replaced only when the
    new order supplies them. New profile: counters start at this order.

    Runs inside the order commit transaction; never commits.
    """
    email = normalize_email(customer_info.email)
    customer = (
        db.session.query(Customer)
        .filter_by(org_id=org_id, email=email)
        .populate_existing()
        .first()
    )

    if customer:
        customer.total_orders += 1
        customer.total_spend_cents += order_total_cents
        customer.last_seen_at = now
        customer.name = customer_info.name
        if customer_info.phone:
            customer.phone = customer_info.phone
        if customer_info.address:
            customer.address = customer_info.address
        return customer

    customer = Customer(
        org_id=org_id,
        email=email,
        name=customer_info.name,
        phone=customer_info.phone,
        address=customer_info.address,
        total_orders=1,
        total_spend_cents=order_total_cents,
        first_seen_at=now,
        last_seen_at=now,
    )
    db.session.add(customer)
    return customer


def list_customers(
    *,
    actor_user_id: int | None,
    org_id: int,
    search: str | None = None,
) -> list[Customer]:
    """Customers of an org by lifetime spend, optionally filtered by email/name."""
    if not permission_service.can_view_org(actor_user_id, org_id):
        return []

    query = db.session.query(Customer).filter(Customer.org_id == org_id)
    term = (search or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(
            Customer.email.like(pattern),
            func.lower(Customer.name).like(pattern),
        ))

    return query.order_by(Customer.total_spend_cents.desc(), Customer.id).all()


def get_customer(*, actor_user_id: int | None, customer_id: int) -> dict | None:
    """Customer profile with its orders (matched by email), newest first."""
    customer = db.session.get(Customer, customer_id)
    if not customer:
        return None
    if not permission_service.can_view_org(actor_user_id, customer.org_id):
        return None

    orders = (
        db.session.query(Order)
        .filter_by(org_id=customer.org_id, customer_email=customer.email)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    data = customer.to_dict()
    data["orders"] = [order.to_dict() for order in orders]
    return data
