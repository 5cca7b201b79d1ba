from dataclasses import dataclass

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100


@dataclass(frozen=True)
class PageParams:
    page: int = DEFAULT_PAGE
    per_page: int = DEFAULT_PER_PAGE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @classmethod
    def from_query(
        cls,
        page: int | None,
        per_page: int | None,
        *,
        default_per_page: int = DEFAULT_PER_PAGE,
        max_per_page: int = MAX_PER_PAGE,
    ) -> "PageParams":
        """Clamp raw query values; out-of-range input falls back to defaults."""
        if page is None or page < 1:
            page = DEFAULT_PAGE
        if per_page is None or per_page < 1:
            per_page = default_per_page
        return cls(page=page, per_page=min(per_page, max_per_page))


def total_pages(total: int, per_page: int) -> int:
    if total <= 0:
        return 0
    return -(-total // per_page)
