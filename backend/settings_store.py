# settings_store.py — Access to the admin_settings key/value table
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import AdminSetting, utcnow

GITHUB_PAT_KEY = "github_pat"


async def get_setting(db: AsyncSession, key: str) -> Optional[str]:
    result = await db.execute(select(AdminSetting.value).where(AdminSetting.key == key))
    return result.scalar_one_or_none()


async def set_setting(db: AsyncSession, key: str, value: str) -> AdminSetting:
    """Upsert a setting. The caller commits."""
    setting = await db.get(AdminSetting, key)
    if setting is None:
        setting = AdminSetting(key=key, value=value)
        db.add(setting)
    else:
        setting.value = value
        setting.updated_at = utcnow()
    return setting


async def get_github_token(db: AsyncSession) -> Optional[str]:
    return await get_setting(db, GITHUB_PAT_KEY)


def mask_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    return f"ghp_****{token[-4:]}"
