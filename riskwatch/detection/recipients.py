"""
Recipient Resolver

Finds who should hear about a condition on a project or user. Lookups follow
an ordered fallback chain and stop at the first non-empty step:

1. explicit project team members with the wanted role
2. the project role table (admin with custom_role=project_manager counts as PM)
3. tenant owner, then any active tenant admin

Escalations that must reach everyone use union() instead.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from riskwatch.models import Project, ProjectStatus, ProjectUserRole, Tenant, User, ADMIN_ROLES

logger = logging.getLogger(__name__)


PM_TEAM_ROLES = ("project_manager", "owner")
MEMBER_TEAM_ROLES = ("team_member", "project_manager")
ACTIVE_PROJECT_STATUSES = (ProjectStatus.ACTIVE.value, "in_progress")


def union(*groups: Iterable[User]) -> List[User]:
    """Merge recipient lists, dropping duplicates by user id and keeping order."""
    seen = set()
    merged = []
    for group in groups:
        for user in group:
            if user.id in seen:
                continue
            seen.add(user.id)
            merged.append(user)
    return merged


class RecipientResolver:
    """Resolves notification targets for projects and users within a tenant."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Lookups
    # =========================================================================

    async def active_users_by_email(self, tenant_id: str, emails: Sequence[str]) -> List[User]:
        if not emails:
            return []
        result = await self.db.execute(
            select(User)
            .where(User.tenant_id == tenant_id)
            .where(User.email.in_(list(emails)))
            .where(User.status == "active")
            .order_by(User.email)
        )
        return list(result.scalars().all())

    async def _role_table_users(self, project: Project, condition) -> List[User]:
        result = await self.db.execute(
            select(User)
            .join(ProjectUserRole, ProjectUserRole.user_id == User.id)
            .where(ProjectUserRole.project_id == project.id)
            .where(condition)
            .where(User.status == "active")
            .order_by(User.email)
        )
        return union(result.scalars().all())

    # =========================================================================
    # Project scoped
    # =========================================================================

    async def project_managers(self, project: Project) -> List[User]:
        """PMs of a project: explicit team roles first, then the role table."""
        explicit = await self.active_users_by_email(
            project.tenant_id, project.member_emails(PM_TEAM_ROLES)
        )
        if explicit:
            return explicit

        return await self._role_table_users(
            project,
            or_(
                ProjectUserRole.role == "project_manager",
                and_(ProjectUserRole.role == "admin", ProjectUserRole.custom_role == "project_manager"),
            ),
        )

    async def project_leads(self, project: Project) -> List[User]:
        """The project owner followed by its PMs."""
        owners = []
        if project.owner_email:
            owners = await self.active_users_by_email(project.tenant_id, [project.owner_email])
        return union(owners, await self.project_managers(project))

    async def project_admins(self, project: Project) -> List[User]:
        return await self._role_table_users(project, ProjectUserRole.role == "admin")

    async def project_members(self, project: Project) -> List[str]:
        """Emails of the people working on a project."""
        emails = project.member_emails()
        if emails:
            return emails

        users = await self._role_table_users(project, ProjectUserRole.role.in_(MEMBER_TEAM_ROLES))
        return [user.email for user in users]

    # =========================================================================
    # Tenant scoped
    # =========================================================================

    async def tenant_admins(self, tenant_id: str, roles: Sequence[str] = ADMIN_ROLES) -> List[User]:
        result = await self.db.execute(
            select(User)
            .where(User.tenant_id == tenant_id)
            .where(User.role.in_(list(roles)))
            .where(User.status == "active")
            .order_by(User.email)
        )
        return list(result.scalars().all())

    async def tenant_owner(self, tenant: Tenant) -> Optional[User]:
        if not tenant.owner_email:
            return None
        users = await self.active_users_by_email(tenant.id, [tenant.owner_email])
        return users[0] if users else None

    async def fallback(self, tenant: Tenant) -> List[User]:
        """Last resort: the tenant owner, else any active admin."""
        owner = await self.tenant_owner(tenant)
        if owner:
            return [owner]

        admins = await self.tenant_admins(tenant.id)
        if admins:
            return admins[:1]

        logger.warning(f"Tenant {tenant.id} has no owner or active admin to fall back to")
        return []

    # =========================================================================
    # User scoped
    # =========================================================================

    async def user_projects(self, user: User) -> List[Project]:
        """Active projects the user works on, via team members or the role table."""
        result = await self.db.execute(
            select(Project)
            .where(Project.tenant_id == user.tenant_id)
            .where(Project.status.in_(ACTIVE_PROJECT_STATUSES))
            .order_by(Project.name)
        )
        projects = [p for p in result.scalars().all() if user.email in p.member_emails()]

        role_result = await self.db.execute(
            select(Project)
            .join(ProjectUserRole, ProjectUserRole.project_id == Project.id)
            .where(ProjectUserRole.user_id == user.id)
            .where(Project.status.in_(ACTIVE_PROJECT_STATUSES))
        )
        for project in role_result.scalars().all():
            if project not in projects:
                projects.append(project)
        return projects

    async def managers_for_user(self, user: User) -> List[User]:
        """PMs of every active project the user belongs to, excluding the user."""
        managers: List[User] = []
        for project in await self.user_projects(user):
            managers = union(managers, await self.project_managers(project))
        return [m for m in managers if m.id != user.id]
