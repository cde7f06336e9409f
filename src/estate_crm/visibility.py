"""Role-based filtering of leads and tasks."""

from typing import Optional, List

from .storage.models import Lead, Task, User


def visible_leads(leads: List[Lead], user: Optional[User]) -> List[Lead]:
    """Admins see every lead. Salespeople see only leads assigned to them."""
    if user is None:
        return []
    if user.is_admin:
        return list(leads)
    return [lead for lead in leads if lead.assigned_salesperson_id == user.id]


def visible_tasks(tasks: List[Task], user: Optional[User]) -> List[Task]:
    if user is None:
        return []
    if user.is_admin:
        return list(tasks)
    return [task for task in tasks if task.assigned_to_id == user.id]
