import pytest
from rental.utils.pagination import PageParams, total_pages


def test_defaults_when_query_missing() -> None:
    params = PageParams.from_query(None, None, default_per_page=10, max_per_page=100)
    assert params == PageParams(page=1, per_page=10)
    assert params.offset == 0


@pytest.mark.parametrize("page, per_page", [(0, 0), (-3, -1)])
def test_out_of_range_values_fall_back(page: int, per_page: int) -> None:
    assert PageParams.from_query(page, per_page, default_per_page=20) == PageParams(page=1, per_page=20)


def test_per_page_is_capped() -> None:
    assert PageParams.from_query(2, 500, max_per_page=100) == PageParams(page=2, per_page=100)


def test_offset() -> None:
    assert PageParams(page=3, per_page=25).offset == 50


@pytest.mark.parametrize("total, per_page, expected", [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2)])
def test_total_pages(total: int, per_page: int, expected: int) -> None:
    assert total_pages(total, per_page) == expected
