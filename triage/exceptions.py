"""
Error taxonomy for queue admission and the unified API error envelope.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class ScoringUnavailable(Exception):
    """The external scorer failed, timed out or answered with garbage.

    Never reaches API callers: admission recovers with a fallback analysis.
    """


class NotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'not found'
    default_code = 'not_found'


class ConcurrentUpdateConflict(APIException):
    """A position-shift transaction kept losing the race for its hospital."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'queue is busy, please retry'
    default_code = 'conflict'


class InvariantViolation(APIException):
    """Dense-position or ordering invariant found broken inside a write."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'queue invariant violated'
    default_code = 'invariant_violation'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('Unhandled error in %s', context.get('view').__class__.__name__)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': 'internal error'}}, status=500)
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    code = getattr(exc, 'default_code', None) or 'api_error'
    resp.data = {'ok': False, 'error': {'code': code, 'message': detail}}
    return resp
