"""System flag admin API (correios.*, api.keys, app.apiKey)."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import SystemConfig
from app.schemas import ConfigEntry, ConfigOut
from app.services.auth import require_admin

router = APIRouter(
    prefix="/admin/config",
    tags=["config"],
    dependencies=[Depends(require_admin)],
)


@router.get("/", response_model=list[ConfigOut])
async def list_config(prefix: str = "", db: AsyncSession = Depends(get_db)):
    stmt = select(SystemConfig).order_by(SystemConfig.key)
    if prefix:
        stmt = stmt.where(SystemConfig.key.startswith(prefix))
    result = await db.execute(stmt)
    return result.scalars().all()


@router.put("/", response_model=ConfigOut)
async def set_config(data: ConfigEntry, db: AsyncSession = Depends(get_db)):
    entry = await db.get(SystemConfig, data.key)
    if entry is None:
        entry = SystemConfig(key=data.key, value=data.value)
        db.add(entry)
    else:
        entry.value = data.value
    await db.commit()
    await db.refresh(entry)
    return entry


@router.delete("/{key}", status_code=204)
async def delete_config(key: str, db: AsyncSession = Depends(get_db)):
    entry = await db.get(SystemConfig, key)
    if not entry:
        raise HTTPException(404, "Config key not found")
    await db.delete(entry)
    await db.commit()
