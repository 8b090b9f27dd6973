# =============================================================================
# fitlog/services/__init__.py
# Service Layer for FitLog
# =============================================================================
"""
Service layer between the state containers and the offline data layer.

Usage Example:
-------------
    from fitlog.offline import StorageHandle
    from fitlog.services import build_data_services

    storage = StorageHandle.create(settings)
    services = build_data_services(storage)

    result = services.workouts.get_all()
    if result.from_cache:
        print(result.error)
"""

from .base_service import BaseService, FetchResult, ServiceResult
from .data_service import (
    BodyFatDataService,
    DataService,
    DataServices,
    ExerciseDataService,
    WeightDataService,
    WorkoutDataService,
    build_data_services,
)

__all__ = [
    "BaseService",
    "ServiceResult",
    "DataService",
    "DataServices",
    "FetchResult",
    "WorkoutDataService",
    "ExerciseDataService",
    "WeightDataService",
    "BodyFatDataService",
    "build_data_services",
]
