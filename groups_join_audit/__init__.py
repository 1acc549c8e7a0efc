"""
Google Groups join policy audit.

This module provides a command line audit that:
1. Authorizes against Google APIs with OAuth (cached token or local browser flow)
2. Lists every Google Group of a customer through the Admin Directory API
3. Reports groups whose Groups Settings let anyone in the domain, or anyone at
   all, join without an invitation

Run it as ``groups-join-audit --customer_id <id>`` or
``python -m groups_join_audit --customer_id <id>``.
"""

from .audit import Finding, audit_groups, classify
from .config import Config
from .directory import Group, list_groups
from .exceptions import AuditError

__version__ = "0.1.0"
__all__ = ["AuditError", "Config", "Finding", "Group", "audit_groups", "classify", "list_groups"]
