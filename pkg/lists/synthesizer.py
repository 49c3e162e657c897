"""
List group synthesizer.

Given a list and a grouping strategy, computes the groups the list should
have, creates the ones that are missing (each with its filter) and returns
the persisted set.

Strategies:
  LIST_STAGE - one group per pipeline stage of the list
  ASSIGNEES  - one group per project member, plus "No Assignee"
  DUE_DATE   - Past Due / Today / Upcoming / No Due Date
  ALL        - a single "All" group without a filter

Reconciliation matches generated groups against stored ones on
(entity_id, entity_type, name). Stored groups are never deleted here.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from .filter_store import FiltersService
from .filters import END_OF_DAY, START_OF_DAY, Condition, Operator, where
from .groups import ListGroupsRepository
from .schema import (
    FilterEntityTypes,
    GroupDescriptor,
    ListGroup,
    ListGroupDueDate,
    ListGroupEntityTypes,
    ListGroupOptions,
)
from .stages import ListStagesService
from .store import Database
from .users import UsersService

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """Raised when a list group does not exist."""
    pass


DEFAULT_GROUP = GroupDescriptor(type=ListGroupOptions.ALL, name="All")


class ListGroupsService:
    """Lists, generates, fetches and updates list groups."""

    def __init__(
        self,
        groups: ListGroupsRepository,
        stages: ListStagesService,
        users: UsersService,
        filters: FiltersService,
    ):
        self.groups = groups
        self.stages = stages
        self.users = users
        self.filters = filters

    @classmethod
    def from_db(cls, db: Database) -> "ListGroupsService":
        return cls(
            groups=ListGroupsRepository(db),
            stages=ListStagesService(db),
            users=UsersService(db),
            filters=FiltersService(db),
        )

    async def create(self, group: ListGroup) -> ListGroup:
        return await asyncio.to_thread(self.groups.create, group)

    async def find_all(self, list_id: int,
                       group_by: Optional[ListGroupOptions] = None) -> List[ListGroup]:
        """Groups of a list with their filters, ascending by order."""
        return await asyncio.to_thread(self.groups.find, list_id, group_by)

    async def generate_groups(
        self,
        list_id: int,
        ignore_completed: bool = False,
        group_by: Optional[ListGroupOptions] = None,
    ) -> List[ListGroup]:
        """
        Make sure the groups of a strategy exist for a list and return them.

        Missing groups are created concurrently. A failed creation is logged
        and skipped; the result is re-read from storage afterwards, so groups
        that failed to persist are simply absent until the next call.

        With LIST_STAGE and ignore_completed, groups named after a completed
        stage are left out of the result (they stay stored).
        """
        group_by = group_by or ListGroupOptions.ALL
        existing = await self.find_all(list_id, group_by)

        if group_by == ListGroupOptions.LIST_STAGE:
            generated = await self.generate_groups_by_list_stage(list_id)
        elif group_by == ListGroupOptions.ASSIGNEES:
            generated = await self.generate_groups_by_assignees(list_id)
        elif group_by == ListGroupOptions.DUE_DATE:
            generated = await self.generate_groups_by_due_date()
        else:
            generated = [DEFAULT_GROUP]

        existing_by_key = {group.key: group for group in existing}
        results = await asyncio.gather(
            *(self._reconcile(d, existing_by_key, list_id, group_by) for d in generated),
            return_exceptions=True,
        )

        created = kept = failed = 0
        for descriptor, result in zip(generated, results):
            if isinstance(result, Exception):
                failed += 1
                logger.warning(
                    f"Could not create group '{descriptor.name}' for list {list_id} "
                    f"({group_by.value}): {result!r}"
                )
            elif result[0]:
                kept += 1
            else:
                created += 1
        logger.info(
            f"Generated {group_by.value} groups for list {list_id}: "
            f"{created} created, {kept} kept, {failed} failed"
        )

        final_groups = await self.find_all(list_id, group_by)

        if group_by == ListGroupOptions.LIST_STAGE and ignore_completed:
            open_stages = await asyncio.to_thread(self.stages.find_by, list_id, False)
            open_names = {stage.name for stage in open_stages}
            final_groups = [g for g in final_groups if g.name in open_names]

        return final_groups

    async def _reconcile(
        self,
        descriptor: GroupDescriptor,
        existing_by_key: Dict[tuple, ListGroup],
        list_id: int,
        group_by: ListGroupOptions,
    ) -> Tuple[bool, ListGroup]:
        """Returns (existed, group); creates group and filter when missing."""
        match = existing_by_key.get(descriptor.key)
        if match is not None:
            return True, match

        group = await self.create(ListGroup.from_descriptor(descriptor, list_id, group_by))
        if descriptor.where is not None:
            group.filter = await asyncio.to_thread(
                self.filters.create, group.id, FilterEntityTypes.LIST_GROUP, descriptor.where
            )
        return False, group

    # ── Strategies ──────────────────────────────────────────────────────────

    async def generate_groups_by_list_stage(self, list_id: int) -> List[GroupDescriptor]:
        stages = await asyncio.to_thread(self.stages.find_all, list_id)
        return [
            GroupDescriptor(
                type=ListGroupOptions.LIST_STAGE,
                name=stage.name,
                color=stage.color,
                order=stage.order,
                entity_id=stage.id,
                entity_type=ListGroupEntityTypes.LIST_STAGE,
                where=where(Condition("cardLists.listStageId", Operator.EQ, stage.id)),
            )
            for stage in stages
        ]

    async def generate_groups_by_assignees(self, list_id: int) -> List[GroupDescriptor]:
        users = (await asyncio.to_thread(self.users.find_all, list_id))["users"]

        groups = [
            GroupDescriptor(
                type=ListGroupOptions.ASSIGNEES,
                name=user.full_name,
                icon=user.photo,
                order=index + 1,
                entity_id=user.id,
                entity_type=ListGroupEntityTypes.USER,
                where=where(Condition("users.id", Operator.EQ, user.id)),
            )
            for index, user in enumerate(users)
        ]
        groups.append(
            GroupDescriptor(
                type=ListGroupOptions.ASSIGNEES,
                name="No Assignee",
                where=where(Condition("users.id", Operator.IS_NULL, None)),
            )
        )
        return groups

    async def generate_groups_by_due_date(self) -> List[GroupDescriptor]:
        due = "card.dueAt"
        return [
            GroupDescriptor(
                type=ListGroupOptions.DUE_DATE,
                name=ListGroupDueDate.PAST_DUE.value,
                where=where(Condition(due, Operator.LT, START_OF_DAY)),
                icon="mdi-clock-time-eight",
                color="error",
                order=1,
            ),
            GroupDescriptor(
                type=ListGroupOptions.DUE_DATE,
                name=ListGroupDueDate.TODAY.value,
                where=where(Condition(due, Operator.BETWEEN, [START_OF_DAY, END_OF_DAY])),
                icon="mdi-clock-time-twelve",
                color="info",
                order=2,
            ),
            GroupDescriptor(
                type=ListGroupOptions.DUE_DATE,
                name=ListGroupDueDate.UPCOMING.value,
                where=where(Condition(due, Operator.GT, END_OF_DAY)),
                icon="mdi-clock-time-four",
                color="default",
                order=3,
            ),
            GroupDescriptor(
                type=ListGroupOptions.DUE_DATE,
                name=ListGroupDueDate.NO_DUE_DATE.value,
                where=where(Condition(due, Operator.IS_NULL, None)),
                icon="mdi-clock-time-six-outline",
                color="default",
                order=4,
            ),
        ]

    # ── Single group ────────────────────────────────────────────────────────

    async def find_one(self, group_id: int) -> ListGroup:
        group = await asyncio.to_thread(self.groups.find_one, group_id)
        if group is None:
            raise NotFoundError(f"List Group with ID {group_id} not found")
        return group

    async def update(self, group_id: int, patch: Dict[str, Any]) -> ListGroup:
        """Merge a partial patch onto a stored group and save it."""
        group = await self.find_one(group_id)
        group.merge(patch)
        return await asyncio.to_thread(self.groups.save, group)
