"""
Join policy audit through the Groups Settings API.

Each group's settings are fetched one at a time and its ``whoCanJoin``
value is compared against the policies that let people join without an
invitation.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from googleapiclient.discovery import build

from .directory import Group, ServiceBuildError
from .exceptions import AuditError

logger = logging.getLogger(__name__)

SETTINGS_SCOPE = 'https://www.googleapis.com/auth/apps.groups.settings'

ALL_IN_DOMAIN_CAN_JOIN = 'ALL_IN_DOMAIN_CAN_JOIN'
ANYONE_CAN_JOIN = 'ANYONE_CAN_JOIN'

# whoCanJoin values reported, matched exactly
PERMISSIVE_JOIN_POLICIES = {
    ALL_IN_DOMAIN_CAN_JOIN: 'allows anyone in the domain to join',
    ANYONE_CAN_JOIN: 'allows anyone anywhere to join',
}


class SettingsFetchError(AuditError):
    """Raised when one group's settings cannot be retrieved."""
    pass


@dataclass
class GroupSettings:
    email: str
    who_can_join: str = ''

    @classmethod
    def from_api(cls, group_email: str, resource: dict) -> 'GroupSettings':
        return cls(
            email=group_email,
            who_can_join=resource.get('whoCanJoin') or '',
        )


@dataclass
class Finding:
    """A group whose join policy is too permissive."""

    group_email: str
    who_can_join: str
    message: str

    def __str__(self):
        return f"Group: {self.group_email} | {self.message}"


@dataclass
class AuditSummary:
    groups_checked: int = 0
    failures: int = 0
    findings: List[Finding] = field(default_factory=list)


def build_settings_service(credentials):
    """
    Create Groups Settings API service.

    The credentials must carry the scope:
        https://www.googleapis.com/auth/apps.groups.settings

    Raises:
        ServiceBuildError: If the client cannot be built
    """
    try:
        return build('groupssettings', 'v1', credentials=credentials, cache_discovery=False)
    except Exception as e:
        logger.error(f"Failed to create Groups Settings service: {e}")
        raise ServiceBuildError(f"Unable to create Groups Settings service: {e}") from e


def fetch_group_settings(service, group_email: str) -> GroupSettings:
    """
    Fetch the settings of one group.

    Args:
        service: Groups Settings API service
        group_email: Email of the group

    Returns:
        GroupSettings: The group's settings

    Raises:
        SettingsFetchError: If the settings cannot be retrieved
    """
    try:
        resource = service.groups().get(groupUniqueId=group_email, alt='json').execute()
        return GroupSettings.from_api(group_email, resource)
    except Exception as e:
        # Any failure only affects this group, the audit moves on
        raise SettingsFetchError(f"{type(e).__name__}: {e}") from e


def classify(settings: GroupSettings) -> Optional[Finding]:
    """
    Check a group's join policy.

    Args:
        settings: Settings of the group

    Returns:
        Finding: The finding for a permissive policy, None for any other value
    """
    message = PERMISSIVE_JOIN_POLICIES.get(settings.who_can_join)
    if message is None:
        return None
    return Finding(settings.email, settings.who_can_join, message)


def audit_group(service, group: Group) -> Optional[Finding]:
    settings = fetch_group_settings(service, group.email)
    logger.debug(f"Group {group.email} whoCanJoin={settings.who_can_join}")
    return classify(settings)


def audit_groups(
    service,
    groups: Iterable[Group],
    report: Callable[[str], None] = print,
) -> AuditSummary:
    """
    Audit groups one after the other.

    A group whose settings cannot be fetched is logged and skipped; the
    remaining groups are still audited. Every finding is reported as soon
    as it is found.

    Args:
        service: Groups Settings API service
        groups: Groups to audit
        report: Called with the text of each finding

    Returns:
        AuditSummary: Counts and findings of the run
    """
    summary = AuditSummary()
    for group in groups:
        summary.groups_checked += 1
        try:
            finding = audit_group(service, group)
        except SettingsFetchError as e:
            logger.warning(f"Unable to retrieve settings for group {group.email}: {e}")
            summary.failures += 1
            continue

        if finding is not None:
            summary.findings.append(finding)
            report(str(finding))

    return summary
