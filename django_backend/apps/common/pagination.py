from collections import OrderedDict

from rest_framework import serializers
from rest_framework.filters import OrderingFilter
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _positive_int(request, name, default, maximum=None):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise serializers.ValidationError({name: ["A valid integer is required."]})
    if value < 1 or (maximum is not None and value > maximum):
        bound = f"between 1 and {maximum}" if maximum else "at least 1"
        raise serializers.ValidationError({name: [f"Must be {bound}."]})
    return value


class StandardPagination(PageNumberPagination):
    """``page`` (>= 1) and ``limit`` (1-100) query parameters."""

    page_size = DEFAULT_PAGE_SIZE
    page_query_param = "page"
    page_size_query_param = "limit"
    max_page_size = MAX_PAGE_SIZE

    def get_page_size(self, request):
        return _positive_int(request, self.page_size_query_param, self.page_size, self.max_page_size)

    def paginate_queryset(self, queryset, request, view=None):
        _positive_int(request, self.page_query_param, 1)
        return super().paginate_queryset(queryset, request, view)

    def get_paginated_response(self, data):
        page = self.page
        return Response(OrderedDict([
            ("count", page.paginator.count),
            ("current_page", page.number),
            ("total_pages", page.paginator.num_pages),
            ("has_next", page.has_next()),
            ("has_prev", page.has_previous()),
            ("results", data),
        ]))


class SortOrderFilter(OrderingFilter):
    """
    Order by ``sort`` in direction ``order`` (``asc`` or ``desc``).

    Only fields listed in the view's ``ordering_fields`` are accepted.
    """

    ordering_param = "sort"
    order_param = "order"

    def get_ordering(self, request, queryset, view):
        field = request.query_params.get(self.ordering_param)
        direction = request.query_params.get(self.order_param, "desc").lower()
        if direction not in ("asc", "desc"):
            raise serializers.ValidationError({self.order_param: ["Must be 'asc' or 'desc'."]})
        if not field:
            return self.get_default_ordering(view)

        allowed = getattr(view, "ordering_fields", None) or []
        if field not in allowed:
            raise serializers.ValidationError({self.ordering_param: [f"Cannot sort by '{field}'."]})
        return ["-" + field if direction == "desc" else field]
