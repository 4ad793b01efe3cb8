from .tenancy import Tenant
from .catalog import ServiceCategory, ServiceItem
from .staff import Staff, StaffSchedule, StaffLeave, staff_service_categories
from .customers import Customer
from .bookings import Booking, BookingEvent, EXTERNAL_STATUS_NAMES
from .marketing import Coupon, Campaign
from .security import SecurityEvent

__all__ = [
    'Tenant',
    'ServiceCategory', 'ServiceItem',
    'Staff', 'StaffSchedule', 'StaffLeave', 'staff_service_categories',
    'Customer',
    'Booking', 'BookingEvent', 'EXTERNAL_STATUS_NAMES',
    'Coupon', 'Campaign',
    'SecurityEvent',
]
