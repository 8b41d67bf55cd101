from rest_framework.pagination import PageNumberPagination


class StandardPagination(PageNumberPagination):
    """page / limit query params, как ждёт фронтенд."""

    page_size = 50
    page_size_query_param = 'limit'
    max_page_size = 200
