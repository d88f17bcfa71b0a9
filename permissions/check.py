from permissions.matrix import PERMISSION_MATRIX


def normalize_role(role):
    return str(role or "").strip().upper().replace("-", "_").replace(" ", "_")


def has_permission(user, permission):
    if not user or not getattr(user, "role", None):
        return False

    # No role bypass: approval authority is exactly what the matrix grants.
    return permission in PERMISSION_MATRIX.get(normalize_role(user.role), [])
