ROLE_HIERARCHY = {"owner": 3, "admin": 2, "member": 1}


def role_rank(role: str | None) -> int:
    if role is None:
        return 0
    return ROLE_HIERARCHY.get(role.lower(), 0)


def has_role(current_role: str | None, required_role: str) -> bool:
    """Owner satisfies admin, admin satisfies member."""

    if current_role is None:
        return False
    return role_rank(current_role) >= ROLE_HIERARCHY[required_role]


def resolve_company_role(roles: list[str]) -> str | None:
    ranked = [role.lower() for role in roles if role.lower() in ROLE_HIERARCHY]
    if not ranked:
        return None
    return max(ranked, key=role_rank)
