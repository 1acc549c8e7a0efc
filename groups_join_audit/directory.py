"""
Google Group listing through the Admin Directory API.
"""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .exceptions import AuditError

logger = logging.getLogger(__name__)

DIRECTORY_SCOPE = 'https://www.googleapis.com/auth/admin.directory.group.readonly'


class ServiceBuildError(AuditError):
    """Raised when an API client cannot be created."""
    pass


class GroupListError(AuditError):
    """Raised when a page of groups cannot be retrieved."""
    pass


@dataclass
class Group:
    email: str
    name: str = ''
    description: str = ''
    id: Optional[str] = None

    @classmethod
    def from_api(cls, resource: dict) -> 'Group':
        return cls(
            email=resource['email'],
            name=resource.get('name', ''),
            description=resource.get('description', ''),
            id=resource.get('id'),
        )


def build_directory_service(credentials):
    """
    Create Admin Directory API service.

    The credentials must carry the scope:
        https://www.googleapis.com/auth/admin.directory.group.readonly

    Returns:
        Resource: Admin Directory API service

    Raises:
        ServiceBuildError: If the client cannot be built
    """
    try:
        return build('admin', 'directory_v1', credentials=credentials, cache_discovery=False)
    except Exception as e:
        logger.error(f"Failed to create Admin Directory service: {e}")
        raise ServiceBuildError(f"Unable to create Admin SDK Directory service: {e}") from e


def list_groups(service, customer_id: str, page_size: int = 100) -> Iterator[Group]:
    """
    Iterate over every group of a customer, page by page.

    Pages are requested lazily as the caller consumes the groups and groups
    come out in the order the API returns them. Iteration ends on the first
    response without a nextPageToken.

    Args:
        service: Admin Directory API service
        customer_id: Customer whose groups are listed
        page_size: Groups requested per page

    Yields:
        Group: Each group in API order

    Raises:
        GroupListError: If any page cannot be retrieved
    """
    page_token = None
    page = 0
    while True:
        params = {'customer': customer_id, 'maxResults': page_size}
        if page_token:
            params['pageToken'] = page_token

        try:
            response = service.groups().list(**params).execute()
        except (HttpError, httplib2.HttpLib2Error, GoogleAuthError, OSError) as e:
            raise GroupListError(f"Unable to retrieve groups: {e}") from e

        page += 1
        groups = response.get('groups', [])
        logger.debug(f"Got page {page} with {len(groups)} groups")
        for resource in groups:
            yield Group.from_api(resource)

        page_token = response.get('nextPageToken')
        if not page_token:
            break
