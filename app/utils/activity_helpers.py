from sqlalchemy.ext.asyncio import AsyncSession
from app.models.support.activity_models import UserActivity
from app.constants.activity_templates import ACTIVITY_TEMPLATES
from app.constants.activity_codes import ActivityCode

SYSTEM_USERNAME = "system"
SYSTEM_ROLE = "System"


def actor_context(user) -> dict:
    """Template/context fields describing who performed an action. ``None`` means the scheduler."""
    if user is None:
        return {
            "user_id": None,
            "username": SYSTEM_USERNAME,
            "actor_role": SYSTEM_ROLE,
            "actor_email": SYSTEM_USERNAME,
        }
    role = getattr(user.role, "value", user.role)
    return {
        "user_id": user.id,
        "username": user.username,
        "actor_role": role.capitalize(),
        "actor_email": user.username,
    }


async def emit_activity(
    db: AsyncSession,
    *,
    user_id: int | None,
    username: str,
    code: ActivityCode,
    **context,
):
    template = ACTIVITY_TEMPLATES.get(code)
    if not template:
        raise ValueError(f"No activity template for code {code}")

    try:
        message = template.format(**context)
    except KeyError as e:
        raise ValueError(
            f"Missing activity context key: {e.args[0]} for {code}"
        )

    db.add(
        UserActivity(
            user_id=user_id,
            username_snapshot=username,
            action=code.value,
            message=message,
        )
    )


async def emit_actor_activity(db: AsyncSession, actor, code: ActivityCode, **context):
    await emit_activity(db, code=code, **actor_context(actor), **context)
