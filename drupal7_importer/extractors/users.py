"""Row source for Drupal 7 users."""

from typing import Any, List

from sqlalchemy import func, select

from ..models.migration import MigrationJob
from ..services.registry import ExtensionPoint
from .base import BaseRowSource, Row
from .drupal_schema import users, users_roles


class DrupalUserSource(BaseRowSource):
    """
    Reads active Drupal users, one row per user.

    A user with several roles is returned once, carrying the highest
    role id assigned.
    """

    where_point = ExtensionPoint.USER_WHERE
    results_point = ExtensionPoint.USER_RESULTS

    def base_predicates(self, job: MigrationJob) -> List[Any]:
        return [
            users.c.status == 1,
            users.c.uid != 0,  # The anonymous user
        ]

    def build_count_query(self, predicates: List[Any]):
        return select(func.count()).select_from(users).where(*predicates)

    def fetch_rows(self, predicates: List[Any], offset: int, limit: int, job: MigrationJob) -> List[Row]:
        role_id = (
            select(func.max(users_roles.c.rid))
            .where(users_roles.c.uid == users.c.uid)
            .scalar_subquery()
        )
        query = (
            select(
                users.c.uid.label("drupal_user_id"),
                users.c.name.label("user_login"),
                users.c.mail.label("user_email"),
                users.c.created.label("user_registered"),
                users.c.status.label("drupal_user_status"),
                role_id.label("drupal_role_id"),
            )
            .where(*predicates)
            .order_by(users.c.uid)
            .offset(offset)
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(query)]
