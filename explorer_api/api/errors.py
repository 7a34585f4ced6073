import logging
from contextlib import contextmanager

from fastapi import HTTPException, status

from explorer_api.errors import ExplorerError

logger = logging.getLogger(__name__)

@contextmanager
def handle_errors(location: str, **context):
    """
    Translate service failures into a 400 carrying the failure's message.

    Every failure is logged with `location` (e.g. "put.api.explorers.id.startSync")
    and whatever request context the route passes in.
    """
    try:
        yield
    except HTTPException:
        raise
    except ExplorerError as e:
        logger.error(
            e.message,
            extra={"location": location, "kind": e.kind.value, "context": {**context, **e.context}},
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except Exception as e:
        logger.error(str(e), exc_info=True, extra={"location": location, "context": context})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
