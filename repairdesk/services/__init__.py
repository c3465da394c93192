# Services package init
"""
RepairDesk Backend - Services Layer
=====================================

Business logic between routes (HTTP) and the database.

Service Inventory:
    - ApplicationService:      technician application repository
    - ReviewService:           approve / reject / reviewing (owns its transaction)
    - NotificationDispatcher:  push + in-app notifications after commit
    - PushTransport (abstract) / FirebasePushTransport: push delivery
    - NotificationService:     in-app inbox
    - DeviceTokenService:      push token registry
    - TechnicianService:       technician accounts
    - ServiceRequestService:   client repair requests
    - AuthService:             bcrypt passwords, JWT login
    - DocumentService:         application document storage
"""
