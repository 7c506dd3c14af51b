"""
RouteGate
=========

Role-based route access control for reporting dashboards.  Keeps the
authoritative mapping from roles to routes, answers "may this role open
this route" and "which routes does this role see", and lets administrators
change that mapping at runtime with every open navigation view refreshed
through an in-process update channel.

Access is fail-closed: unknown routes, disabled routes, unknown roles and
missing roles are all denied.
"""

__version__ = "0.1.0"
