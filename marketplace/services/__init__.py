# Services package init
"""
Marketplace Backend — Services Layer
=====================================

What:  Business rules between the routes (HTTP) and the database.

Service Inventory:
    - UserService, TokenService, EmailVerificationService: accounts and tokens
    - ProviderService, CategoryService, ServiceCatalog, StaffService:
      per-entity validation and read paths
    - WriteOrchestrator: multi-table transactions and post-commit image
      uploads with compensation
    - StorageGateway (S3 / local), Mailer: side-effect clients
    - BackgroundTaskPool: bounded execution of work done after the response
"""
