"""Request-scoped access to the service container and error translation."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import HTTPException, Request, status

from ..container import ServiceContainer
from ..errors import (
    InvalidStateError,
    NotFoundError,
    OptimizationError,
    PersistenceError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


@contextmanager
def service_errors(action: str) -> Iterator[None]:
    """Translate domain errors raised inside the block into HTTP responses."""
    try:
        yield
    except HTTPException:
        raise
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except InvalidStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except (OptimizationError, ProviderUnavailableError) as exc:
        logger.warning(f"Failed to {action}: {exc}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PersistenceError as exc:
        logger.exception(f"Failed to {action}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Failed to {action}: {exc}",
        ) from exc
    except Exception as exc:
        logger.exception(f"Error while trying to {action}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to {action}: {str(exc)}",
        ) from exc
