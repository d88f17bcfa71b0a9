from permissions.check import has_permission, normalize_role  # noqa: F401
