from shared.models.user import CurrentUser
from shared.models.pagination import PageParams, PaginatedResponse

__all__ = ["CurrentUser", "PageParams", "PaginatedResponse"]
