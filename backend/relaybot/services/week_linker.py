"""
Link newsletter items to their weekly newsletter container.

A newsletter item is published on the next Thursday. The content database
holds one container page per week titled "Nieuwsbrief week <ISO week>";
new items get a relation to the container of their publication week.
Containers are created by hand, so a missing one is expected now and then:
the item is still created, just without the relation.
"""

import logging
from datetime import date, datetime
from typing import Optional, Protocol, Union

from relaybot.errors import ExternalServiceError
from relaybot.models.records import WeekRef
from relaybot.services.time_math import iso_week_number, next_thursday

logger = logging.getLogger(__name__)

CONTAINER_TITLE_TEMPLATE = "Nieuwsbrief week {week}"


class ContainerStore(Protocol):
    def find_content_by_title(self, title: str) -> Optional[str]: ...


def container_title(week_number: int) -> str:
    return CONTAINER_TITLE_TEMPLATE.format(week=week_number)


def publication_week(now: Union[date, datetime]) -> tuple[date, int]:
    """Return (publication date, ISO week number) for an item received at now."""
    today = now.date() if isinstance(now, datetime) else now
    publication_date = next_thursday(today)
    return publication_date, iso_week_number(publication_date)


def resolve_container(store: ContainerStore, now: Union[date, datetime]) -> WeekRef:
    """
    Compute the publication week for now and look up its container.

    Never raises: a missing container or a failing lookup both yield a WeekRef
    with linked_container_id=None and a logged warning.
    """
    publication_date, week_number = publication_week(now)
    title = container_title(week_number)

    container_id: Optional[str] = None
    try:
        container_id = store.find_content_by_title(title)
    except (ExternalServiceError, ValueError) as e:
        logger.warning(f"Container lookup for {title!r} failed: {e}")

    if container_id:
        logger.info(f"Linking to newsletter container {title!r}")
    else:
        logger.warning(f"Could not find {title!r}; relationship not set")

    return WeekRef(
        week_number=week_number,
        publication_date=publication_date,
        container_title=title,
        linked_container_id=container_id,
    )
