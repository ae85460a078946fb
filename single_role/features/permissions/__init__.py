"""
Permission management feature module.

Role-based access control where every user holds at most one role: effective
permissions are a user's direct grants plus its role's grants, resolved through
a cache that lives for one request.
"""
