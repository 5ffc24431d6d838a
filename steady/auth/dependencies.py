import logging
import os
from datetime import datetime
from uuid import UUID

from jose import jwt, JWTError
from fastapi import Header, HTTPException, Depends
from dotenv import load_dotenv
from sqlmodel.ext.asyncio.session import AsyncSession

from steady.db.database import get_session
from steady.models import Profile

logger = logging.getLogger(__name__)

# Load .env file
load_dotenv()

SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")

if not SUPABASE_JWT_SECRET:
    raise RuntimeError("SUPABASE_JWT_SECRET is not set in environment variables")

async def get_current_user(
    authorization: str = Header(...),
    session: AsyncSession = Depends(get_session)
):
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Bearer token")

    token = authorization.split(" ")[1]

    try:
        payload = jwt.decode(
            token,
            SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_aud": False}
        )
    except JWTError as e:
        logger.warning("JWT decode error: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token")

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        user_id = UUID(subject)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")

    email = payload.get("email")
    metadata = payload.get("user_metadata", {}) or {}
    display_name = metadata.get("full_name") or metadata.get("name") or email

    profile = await session.get(Profile, user_id)
    if not profile:
        profile = Profile(
            id=user_id,
            email=email,
            name=display_name,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        session.add(profile)
        await session.commit()
        await session.refresh(profile)

    return {
        "id": str(profile.id),
        "displayName": profile.name or display_name,
        "email": profile.email,
        "user_org": str(profile.logged_in_org_member) if profile.logged_in_org_member else None,
    }
