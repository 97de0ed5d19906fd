from .services import router as services_router
from .time_slots import router as time_slots_router
from .orders import router as orders_router
from .inspections import router as inspections_router
from .appointments import router as appointments_router
from .service_transfers import router as service_transfers_router
from .invoices import router as invoices_router
from .payments import router as payments_router

__all__ = [
    "services_router",
    "time_slots_router",
    "orders_router",
    "inspections_router",
    "appointments_router",
    "service_transfers_router",
    "invoices_router",
    "payments_router",
]
