"""
Role and permission feature module.

Roles group permission keys; an account's effective permissions are the union
over its roles. The role named "admin" passes every permission check.
"""
