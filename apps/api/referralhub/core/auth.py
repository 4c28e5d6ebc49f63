from dataclasses import dataclass

from jose import JWTError, jwt
from starlette.requests import Request

from referralhub.core.config import get_settings

PLATFORM_WIDE = "*"


@dataclass
class AuthUser:
    sub: str
    roles: list[str]
    email: str | None = None
    # None means every company; tokens without a company_ids claim get []
    company_ids: list[str] | None = None


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""

    if not token:
        return AuthUser(sub="anonymous", roles=["guest"])

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return AuthUser(sub="anonymous", roles=["guest"])

    subject = str(payload.get("sub", "anonymous"))
    roles = payload.get("roles", ["member"])
    if not isinstance(roles, list):
        roles = ["member"]
    companies = payload.get("company_ids")
    if companies == PLATFORM_WIDE:
        company_ids = None
    elif isinstance(companies, list):
        company_ids = [str(item) for item in companies]
    else:
        company_ids = []
    email = payload.get("email")
    return AuthUser(
        sub=subject,
        roles=[str(role) for role in roles],
        email=str(email) if email else None,
        company_ids=company_ids,
    )
