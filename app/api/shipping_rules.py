"""Shipping rule admin API."""

import json

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import ShippingRule
from app.schemas import ShippingRuleCreate, ShippingRuleOut, ShippingRuleUpdate
from app.services.auth import require_admin

router = APIRouter(
    prefix="/admin/shipping-rules",
    tags=["shipping-rules"],
    dependencies=[Depends(require_admin)],
)

# columns a PATCH may not clear
NOT_NULL = {"name", "priority", "region_type", "regions", "shipping_cost", "delivery_days", "is_active"}


@router.get("/", response_model=list[ShippingRuleOut])
async def list_rules(
    active: bool | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(ShippingRule)
    if active is not None:
        stmt = stmt.where(ShippingRule.is_active == active)
    stmt = stmt.order_by(ShippingRule.priority.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.post("/", response_model=ShippingRuleOut, status_code=201)
async def create_rule(data: ShippingRuleCreate, db: AsyncSession = Depends(get_db)):
    values = data.model_dump()
    values["regions"] = json.dumps(values["regions"])
    rule = ShippingRule(**values)
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


@router.get("/{rule_id}", response_model=ShippingRuleOut)
async def get_rule(rule_id: str, db: AsyncSession = Depends(get_db)):
    rule = await db.get(ShippingRule, rule_id)
    if not rule:
        raise HTTPException(404, "Shipping rule not found")
    return rule


@router.patch("/{rule_id}", response_model=ShippingRuleOut)
async def update_rule(rule_id: str, data: ShippingRuleUpdate, db: AsyncSession = Depends(get_db)):
    rule = await db.get(ShippingRule, rule_id)
    if not rule:
        raise HTTPException(404, "Shipping rule not found")
    for key, val in data.model_dump(exclude_unset=True).items():
        if val is None and key in NOT_NULL:
            continue
        if key == "regions":
            val = json.dumps(val)
        setattr(rule, key, val)
    await db.commit()
    await db.refresh(rule)
    return rule


@router.delete("/{rule_id}", status_code=204)
async def delete_rule(rule_id: str, db: AsyncSession = Depends(get_db)):
    rule = await db.get(ShippingRule, rule_id)
    if not rule:
        raise HTTPException(404, "Shipping rule not found")
    await db.delete(rule)
    await db.commit()
