from __future__ import annotations

from decimal import Decimal

from app.domain.entities.service_catalog import ServiceOffering, TimeSlot

DEMO_SERVICES: list[ServiceOffering] = [
    ServiceOffering(id="svc-oil", name_key="oilChange", base_price=Decimal("49.99"), duration_minutes=30),
    ServiceOffering(id="svc-oil-filter", name_key="oilAndFilter", base_price=Decimal("69.99"), duration_minutes=45),
    ServiceOffering(id="svc-full", name_key="fullService", base_price=Decimal("149.99"), duration_minutes=90),
]

DEMO_TIME_SLOTS: list[TimeSlot] = [
    TimeSlot(id=f"slot-{hour:02d}", time_slot=f"{hour:02d}:00", order_index=index)
    for index, hour in enumerate(range(8, 18))
]
