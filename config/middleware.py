import logging

from django.http import JsonResponse


logger = logging.getLogger(__name__)


class JsonExceptionMiddleware:
    """
    Turn unhandled exceptions on /api/ paths into a JSON 500.
    Any open transaction.atomic() block has already rolled back by the time
    process_exception runs.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        if not request.path.startswith("/api/"):
            return None

        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return JsonResponse({"error": "Unexpected server error."}, status=500)
