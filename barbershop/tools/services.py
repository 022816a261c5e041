"""Service catalogue loading and add-on selection rules."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from barbershop.clients.store import DataStore
from barbershop.schemas.draft_schema import BookingDraft
from barbershop.schemas.service_schema import AddOnType, Service

logger = logging.getLogger(__name__)

# Types a customer can pick as the anchoring service.
MAIN_SERVICE_TYPES = frozenset({AddOnType.HAIR, AddOnType.BEARD, AddOnType.KID})

# At most one selected add-on per listed type. Beard add-ons are left
# non-exclusive, matching the live booking site.
EXCLUSIVE_ADD_ON_TYPES = frozenset({AddOnType.HAIR})

# Add-on groups offered next to general add-ons, per main service type.
OFFERED_ADD_ON_TYPES: dict[AddOnType, frozenset[AddOnType]] = {
    AddOnType.HAIR: frozenset({AddOnType.GENERAL, AddOnType.BEARD}),
    AddOnType.BEARD: frozenset({AddOnType.GENERAL, AddOnType.HAIR}),
    AddOnType.KID: frozenset({AddOnType.GENERAL}),
    AddOnType.GENERAL: frozenset({AddOnType.GENERAL}),
}


@dataclass
class ServiceCatalog:
    """Active services grouped the way the selection step shows them."""

    services: list[Service] = field(default_factory=list)

    @property
    def main_services(self) -> list[Service]:
        return [s for s in self.services if s.add_on_type in MAIN_SERVICE_TYPES]

    def of_type(self, add_on_type: AddOnType) -> list[Service]:
        return [s for s in self.services if s.add_on_type == add_on_type]

    def get(self, service_id: str) -> Optional[Service]:
        for service in self.services:
            if service.id == service_id:
                return service
        return None


async def fetch_service_catalog(store: DataStore) -> ServiceCatalog:
    """Load active services. Store errors propagate to the caller."""
    services = await store.list_active_services()
    logger.info("Loaded %d active services", len(services))
    return ServiceCatalog(services=[s for s in services if s.is_active])


def compute_offerable_add_ons(
    main_service: Optional[Service], all_services: Iterable[Service]
) -> list[Service]:
    """Add-ons that may accompany ``main_service``, general ones first."""
    if main_service is None:
        return []
    offered = OFFERED_ADD_ON_TYPES[main_service.add_on_type]
    candidates = [s for s in all_services if s.is_active and s.id != main_service.id]
    general = [s for s in candidates if s.add_on_type == AddOnType.GENERAL]
    specific = [
        s for s in candidates
        if s.add_on_type != AddOnType.GENERAL and s.add_on_type in offered
    ]
    return general + specific


def select_main_service(draft: BookingDraft, service: Optional[Service]) -> None:
    """Select ``service`` as the main service; re-selecting it deselects.

    Add-ons only make sense relative to a main service, so they are
    cleared on every change.
    """
    if service is not None and draft.main_service is not None and draft.main_service.id == service.id:
        draft.main_service = None
    else:
        draft.main_service = service
    draft.add_ons = []
    logger.debug("Main service set to %s", draft.main_service.name if draft.main_service else None)


def toggle_add_on(draft: BookingDraft, add_on: Service) -> None:
    """Add or remove ``add_on``, evicting a same-type add-on for exclusive types."""
    if any(item.id == add_on.id for item in draft.add_ons):
        draft.add_ons = [item for item in draft.add_ons if item.id != add_on.id]
        return

    kept = draft.add_ons
    if add_on.add_on_type in EXCLUSIVE_ADD_ON_TYPES:
        kept = [item for item in kept if item.add_on_type != add_on.add_on_type]
    draft.add_ons = [*kept, add_on]


def total_duration(main_service: Service, add_ons: Iterable[Service]) -> int:
    return main_service.duration_minutes + sum(a.duration_minutes for a in add_ons)


def total_price(main_service: Service, add_ons: Iterable[Service]) -> float:
    return main_service.price + sum(a.price for a in add_ons)
