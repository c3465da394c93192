# Importing every model registers its table on Base.metadata
from repairdesk.models.admin import Admin
from repairdesk.models.client import Client, ClientContact
from repairdesk.models.device_token import DeviceToken
from repairdesk.models.notification import Notification
from repairdesk.models.service_request import ServiceRequest
from repairdesk.models.service_request_message import ServiceRequestMessage
from repairdesk.models.technician import Technician
from repairdesk.models.technician_application import TechnicianApplication

__all__ = [
    "Admin",
    "Client",
    "ClientContact",
    "DeviceToken",
    "Notification",
    "ServiceRequest",
    "ServiceRequestMessage",
    "Technician",
    "TechnicianApplication",
]
