"""Packaging catalog admin API."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import PackagingBox
from app.schemas import PackagingBoxCreate, PackagingBoxOut, PackagingBoxUpdate
from app.services.auth import require_admin

router = APIRouter(
    prefix="/admin/packaging-boxes",
    tags=["packaging"],
    dependencies=[Depends(require_admin)],
)


@router.get("/", response_model=list[PackagingBoxOut])
async def list_boxes(active: bool | None = None, db: AsyncSession = Depends(get_db)):
    stmt = select(PackagingBox)
    if active is not None:
        stmt = stmt.where(PackagingBox.is_active == active)
    result = await db.execute(stmt.order_by(PackagingBox.code))
    return result.scalars().all()


@router.post("/", response_model=PackagingBoxOut, status_code=201)
async def create_box(data: PackagingBoxCreate, db: AsyncSession = Depends(get_db)):
    code = data.code.upper()
    existing = await db.execute(select(PackagingBox).where(PackagingBox.code == code))
    if existing.scalar_one_or_none():
        raise HTTPException(409, "Packaging with this code already exists")
    if (data.inner_length > data.outer_length or data.inner_width > data.outer_width
            or data.inner_height > data.outer_height):
        raise HTTPException(400, "Inner dimensions cannot exceed outer dimensions")
    box = PackagingBox(**{**data.model_dump(), "code": code})
    db.add(box)
    await db.commit()
    await db.refresh(box)
    return box


@router.patch("/{box_id}", response_model=PackagingBoxOut)
async def update_box(box_id: str, data: PackagingBoxUpdate, db: AsyncSession = Depends(get_db)):
    box = await db.get(PackagingBox, box_id)
    if not box:
        raise HTTPException(404, "Packaging not found")
    for key, val in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(box, key, val)
    await db.commit()
    await db.refresh(box)
    return box


@router.delete("/{box_id}", status_code=204)
async def delete_box(box_id: str, db: AsyncSession = Depends(get_db)):
    box = await db.get(PackagingBox, box_id)
    if not box:
        raise HTTPException(404, "Packaging not found")
    await db.delete(box)
    await db.commit()
