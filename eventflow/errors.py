"""Workflow error kinds and the result boundary shared by every operation."""

import functools
import logging

from sqlalchemy.exc import SQLAlchemyError

from eventflow.extensions import db

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    error_type = 'WORKFLOW_ERROR'
    status_code = 400

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = list(details or [])

    def to_result(self):
        result = {'success': False, 'error': self.message, 'error_type': self.error_type}
        if self.details:
            result['details'] = self.details
        return result


class Unauthorized(WorkflowError):
    error_type = 'UNAUTHORIZED'
    status_code = 403


class NotFound(WorkflowError):
    error_type = 'NOT_FOUND'
    status_code = 404


class ValidationFailed(WorkflowError):
    """Exit criteria unmet. ``details`` holds every unmet criterion."""
    error_type = 'VALIDATION_FAILED'
    status_code = 422


class InputInvalid(WorkflowError):
    error_type = 'INPUT_INVALID'
    status_code = 400


class Conflict(WorkflowError):
    """The program is in a state that does not allow the operation."""
    error_type = 'CONFLICT'
    status_code = 409


class TransitionFailed(WorkflowError):
    error_type = 'TRANSITION_FAILED'
    status_code = 500


STATUS_CODES = {
    cls.error_type: cls.status_code
    for cls in (Unauthorized, NotFound, ValidationFailed, InputInvalid, Conflict, TransitionFailed)
}


def ok(**extra):
    return {'success': True, **extra}


def workflow_operation(failure_message):
    """
    Wraps a service operation so it always returns a result dict.

    WorkflowError becomes a failure result as-is. Store errors are rolled back,
    logged with full detail and reported with the generic ``failure_message``.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except WorkflowError as e:
                db.session.rollback()
                logger.info("%s refused: %s", func.__name__, e.message)
                return e.to_result()
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception("%s failed in the store", func.__name__)
                return TransitionFailed(failure_message).to_result()
        return wrapper
    return decorator
