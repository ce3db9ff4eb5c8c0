import pytest

from cometixline.config import SegmentId
from cometixline.segments.base import (
    Segment,
    SegmentData,
    circle_icon_for_utilization,
    hourglass_icon_for_utilization,
    sand_timer_icon_for_utilization,
)


@pytest.mark.parametrize(
    "fraction, icon",
    [
        (0.0, "\U000f0a9e"),
        (0.12, "\U000f0a9e"),
        (0.25, "\U000f0a9f"),
        (0.5, "\U000f0aa1"),
        (0.87, "\U000f0aa4"),
        (1.0, "\U000f0aa5"),
    ],
)
def test_circle_icon_steps(fraction, icon):
    assert circle_icon_for_utilization(fraction) == icon


@pytest.mark.parametrize(
    "fraction, icon",
    [
        (0.0, "\uf250"),
        (0.25, "\uf250"),
        (0.5, "\uf251"),
        (0.75, "\uf252"),
        (0.9, "\uf253"),
    ],
)
def test_hourglass_icon_steps(fraction, icon):
    assert hourglass_icon_for_utilization(fraction) == icon


@pytest.mark.parametrize(
    "fraction, icon",
    [
        (0.1, "\U000f06ad"),
        (0.4, "\U000f051f"),
        (0.7, "\U000f078c"),
        (1.0, "\U000f199f"),
    ],
)
def test_sand_timer_icon_steps(fraction, icon):
    assert sand_timer_icon_for_utilization(fraction) == icon


def test_negative_and_nan_saturate_to_lowest():
    assert circle_icon_for_utilization(-1.0) == circle_icon_for_utilization(0.0)
    assert hourglass_icon_for_utilization(float("nan")) == hourglass_icon_for_utilization(0.0)


def test_huge_utilisation_saturates_to_highest():
    assert sand_timer_icon_for_utilization(50.0) == sand_timer_icon_for_utilization(1.0)
    assert circle_icon_for_utilization(10.0) == circle_icon_for_utilization(1.0)


def test_icons_are_monotonic():
    order = ["\uf250", "\uf251", "\uf252", "\uf253"]
    ranks = [order.index(hourglass_icon_for_utilization(i / 100)) for i in range(0, 101)]
    assert ranks == sorted(ranks)


def test_segment_data_defaults():
    data = SegmentData(primary="main")
    assert data.primary == "main"
    assert data.secondary == ""
    assert data.metadata == {}


def test_segment_is_abstract():
    with pytest.raises(TypeError):
        Segment()


def test_concrete_segment_collects():
    class Fixed(Segment):
        id = SegmentId.COST

        def collect(self, input_data):
            return SegmentData(primary=str(input_data))

    result = Fixed().collect("abc")
    expected = SegmentData(primary="abc")
    assert result == expected
    assert result.secondary == expected.secondary == ""
    assert Fixed.id is SegmentId("cost")