from referralhub.platform.security.context import CompanyContext
from referralhub.platform.security.errors import AuthorizationError
from referralhub.platform.security.rls import apply_company_scope, require_admin, validate_company_write

__all__ = [
    "CompanyContext",
    "AuthorizationError",
    "apply_company_scope",
    "require_admin",
    "validate_company_write",
]
