# src/schemas/__init__.py
from .base_schemas import *
from .auth_schemas import *
from .service_schemas import *
from .time_slot_schemas import *
from .appointment_schemas import *
from .order_schemas import *
from .invoice_schemas import *
