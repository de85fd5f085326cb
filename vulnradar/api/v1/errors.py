"""Translate service-layer errors into HTTP responses."""

from fastapi import HTTPException, Request

from vulnradar.services.errors import ServiceError


def to_http_exception(e: ServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


def client_ip(request: Request) -> str | None:
    """Remote address recorded in audit entries."""
    return request.client.host if request.client else None
