import pytest

from strawboat.meta import ColumnMeta, PageMeta


@pytest.fixture
def meta():
    return ColumnMeta(8, [PageMeta(10, 3), PageMeta(20, 4), PageMeta(30, 5)])


def test_total_len(meta):
    assert meta.total_len() == 60


def test_slice(meta):
    sliced = meta.slice(1, 3)
    assert sliced.offset == 18
    assert sliced.pages == [PageMeta(20, 4), PageMeta(30, 5)]


def test_skip_one_page(meta):
    assert meta.skip_one_page() == meta.slice(1, 3)


@pytest.mark.parametrize("start,end", [(3, 3), (0, 4)])
def test_slice_out_of_range(meta, start, end):
    with pytest.raises(ValueError):
        meta.slice(start, end)


def test_ordering():
    assert sorted([PageMeta(2, 1), PageMeta(1, 5)]) == [PageMeta(1, 5), PageMeta(2, 1)]