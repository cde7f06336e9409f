"""Inventory side effect of moving a lead into a booking state."""

import logging
from typing import Optional

from ..storage.mirror import MirrorStore
from ..storage.models import Activity, ActivityType, Lead, mint_id

logger = logging.getLogger(__name__)


class BookingHandler:
    """Marks the booked unit and records an audit activity."""

    def __init__(self, mirror: MirrorStore):
        self.mirror = mirror

    @staticmethod
    def should_book(lead: Lead, previous: Optional[Lead]) -> bool:
        """Book only on entering a booking status with a newly chosen unit."""
        if not lead.is_booking or not lead.booked_unit_id:
            return False
        return previous is None or previous.booked_unit_id != lead.booked_unit_id

    def apply(self, lead: Lead, previous: Optional[Lead], actor_id: str) -> Optional[Activity]:
        """Book the unit if needed. Returns the recorded activity, if any."""
        if not self.should_book(lead, previous):
            return None

        self.mirror.book_unit(lead.booked_unit_id, lead.booked_project)
        activity = Activity(
            id=mint_id("act-book"),
            lead_id=lead.id,
            salesperson_id=actor_id,
            type=ActivityType.NOTE,
            remarks=f"Unit {lead.booked_unit_number} in {lead.booked_project} has been BOOKED.",
            customer_name=lead.customer_name,
        )
        self.mirror.add_activity(activity)
        logger.info(f"Lead {lead.id} booked unit {lead.booked_unit_id}")
        return activity
