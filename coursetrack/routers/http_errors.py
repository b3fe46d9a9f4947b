from fastapi import HTTPException

from coursetrack.services.errors import RecordConflictError


def to_http(exc: Exception) -> HTTPException:
    if isinstance(exc, RecordConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=f'Forbidden: {exc}')
    return HTTPException(status_code=400, detail=str(exc))
