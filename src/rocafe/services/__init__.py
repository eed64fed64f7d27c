"""Services package - Business logic layer for Rocafe.

This package contains the service modules that compute, persist and
protect recipe costs.

Architecture:
- Services: Classes constructed with an explicit Database handle
- Transactions: Managed via Database.session_scope()
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- cost_service: Recursive recipe cost resolution with cycle detection
- recipe_service: Recipe save with replace-all ingredients and versioning
- recipe_version_service: Append-only recipe snapshots
- backup_service: Backup, verify, restore with rollback, retention pruning
- calculation_service: Profit margin and simplified income statement

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Engine, Database handle and initialization
- repositories: Typed record accessors over a caller-owned session
- logging_utils: Structured operation logging
"""

from . import (
    database,
    repositories,
    cost_service,
    recipe_service,
    recipe_version_service,
    backup_service,
    calculation_service,
)

from .database import Database, create_database_engine, initialize_app_database
from .cost_service import CostAggregationService, CostTraversal
from .recipe_service import RecipeService
from .recipe_version_service import RecipeVersionService
from .backup_service import BackupInfo, BackupKind, BackupService, BackupState

from .exceptions import (
    ServiceError,
    RecipeNotFound,
    ProductNotFound,
    ValidationError,
    InvalidQuantity,
    IngredientCostInvalid,
    CircularReference,
    RecipeDepthExceeded,
    DatabaseError,
    BackupError,
    SourceNotFound,
    BackupFileNotFound,
    BackupInvalid,
    PreRestoreBackupFailed,
    RestoreFailed,
    RestoreRollbackFailed,
)

__all__ = [
    # Modules
    "database",
    "repositories",
    "cost_service",
    "recipe_service",
    "recipe_version_service",
    "backup_service",
    "calculation_service",
    # Services
    "Database",
    "create_database_engine",
    "initialize_app_database",
    "CostAggregationService",
    "CostTraversal",
    "RecipeService",
    "RecipeVersionService",
    "BackupService",
    "BackupInfo",
    "BackupKind",
    "BackupState",
    # Exceptions
    "ServiceError",
    "RecipeNotFound",
    "ProductNotFound",
    "ValidationError",
    "InvalidQuantity",
    "IngredientCostInvalid",
    "CircularReference",
    "RecipeDepthExceeded",
    "DatabaseError",
    "BackupError",
    "SourceNotFound",
    "BackupFileNotFound",
    "BackupInvalid",
    "PreRestoreBackupFailed",
    "RestoreFailed",
    "RestoreRollbackFailed",
]
