from coursetrack.routers import activity_tracker, allocations, catalog, facilitators, notifications, students

__all__ = [
    'activity_tracker',
    'allocations',
    'catalog',
    'facilitators',
    'notifications',
    'students',
]
