"""
Staff authorization feature module.

Resolves bearer tokens to employee accounts and checks them against roles and
role-granted permission keys, with the admin role as a coarse bypass.
"""
