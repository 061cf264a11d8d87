"""Tests for getmeasure pagination and page flattening."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.netatmo.base import DataPoint, SyncUnit, from_epoch
from src.netatmo.config_loader import MeasureParams
from src.netatmo.exceptions import DecodeError
from src.netatmo.protocol import MeasureGroup
from src.netatmo.sync.paginator import Paginator, build_query, flatten_groups
from src.netatmo.tests.conftest import TEST_DEVICE, TEST_MODULE, FakeMeasureSource


def _groups(*raw: dict) -> list[MeasureGroup]:
    return [MeasureGroup.model_validate(g) for g in raw]


async def _collect(paginator: Paginator, unit: SyncUnit, start: datetime | None):
    seen: list[tuple[list[DataPoint], datetime]] = []

    async def consumer(points: list[DataPoint], next_cursor: datetime) -> None:
        seen.append((points, next_cursor))

    result = await paginator.for_each_page(unit, start, consumer)
    return seen, result


# ---------------------------------------------------------------------------
# flatten_groups
# ---------------------------------------------------------------------------


class TestFlattenGroups:
    def test_step_expansion(self) -> None:
        groups = _groups({"beg_time": 1000, "step_time": 300, "value": [[20.1], [20.3]]})

        points = flatten_groups(groups, width=1)

        assert [p.time for p in points] == [from_epoch(1000), from_epoch(1300)]
        assert [p.values for p in points] == [(20.1,), (20.3,)]

    def test_groups_concatenate_in_order(self) -> None:
        groups = _groups(
            {"beg_time": 100, "step_time": 10, "value": [[1, 2]]},
            {"beg_time": 500, "step_time": 0, "value": [[3, 4]]},
        )

        points = flatten_groups(groups, width=2)

        assert [p.time for p in points] == [from_epoch(100), from_epoch(500)]
        assert points[1].values == (3.0, 4.0)

    def test_null_values_are_kept(self) -> None:
        points = flatten_groups(_groups({"beg_time": 1, "value": [[None, 55]]}), width=2)
        assert points[0].values == (None, 55.0)

    def test_width_mismatch_raises(self) -> None:
        with pytest.raises(DecodeError):
            flatten_groups(_groups({"beg_time": 1, "value": [[1.0]]}), width=2)

    def test_backwards_groups_raise(self) -> None:
        groups = _groups({"beg_time": 500, "value": [[1]]}, {"beg_time": 100, "value": [[2]]})
        with pytest.raises(DecodeError):
            flatten_groups(groups, width=1)


# ---------------------------------------------------------------------------
# build_query
# ---------------------------------------------------------------------------


class TestBuildQuery:
    def test_module_query(self, module_unit: SyncUnit) -> None:
        start = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

        params = build_query(module_unit, start, MeasureParams())

        assert params == {
            "device_id": TEST_DEVICE,
            "module_id": TEST_MODULE,
            "scale": "max",
            "type": "Temperature",
            "optimize": "true",
            "real_time": "true",
            "date_begin": "1700000000",
        }

    def test_station_query_omits_module_and_start(self, station_unit: SyncUnit) -> None:
        params = build_query(station_unit, None, MeasureParams())

        assert "module_id" not in params
        assert "date_begin" not in params
        assert params["type"] == "Temperature,Humidity"

    def test_measure_params_respected(self, module_unit: SyncUnit) -> None:
        params = build_query(
            module_unit, None, MeasureParams(scale="30min", optimize=False, real_time=False)
        )
        assert params["scale"] == "30min"
        assert "optimize" not in params
        assert "real_time" not in params


# ---------------------------------------------------------------------------
# Paginator
# ---------------------------------------------------------------------------


class TestPaginator:
    @pytest.mark.asyncio
    async def test_cursor_advances_past_last_point(self, module_unit: SyncUnit) -> None:
        source = FakeMeasureSource(
            [
                [{"beg_time": 1000, "step_time": 300, "value": [[20.1], [20.3]]}],
                [{"beg_time": 1600, "step_time": 0, "value": [[20.5]]}],
            ]
        )

        seen, result = await _collect(Paginator(source), module_unit, from_epoch(1000))

        assert [c["date_begin"] for c in source.calls] == ["1000", "1301", "1601"]
        assert [cursor for _, cursor in seen] == [from_epoch(1301), from_epoch(1601)]
        assert result.pages == 2
        assert result.points == 3
        assert result.next_cursor == from_epoch(1601)

    @pytest.mark.asyncio
    async def test_empty_first_page_ends_without_consumer_call(self, module_unit: SyncUnit) -> None:
        source = FakeMeasureSource([])

        seen, result = await _collect(Paginator(source), module_unit, None)

        assert seen == []
        assert len(source.calls) == 1
        assert result.next_cursor is None

    @pytest.mark.asyncio
    async def test_no_request_after_empty_page(self, module_unit: SyncUnit) -> None:
        source = FakeMeasureSource([[{"beg_time": 10, "value": [[1]]}], []])

        await _collect(Paginator(source), module_unit, None)

        assert len(source.calls) == 2

    @pytest.mark.asyncio
    async def test_full_history_first_request_has_no_date_begin(
        self, station_unit: SyncUnit
    ) -> None:
        source = FakeMeasureSource([[{"beg_time": 500, "step_time": 60, "value": [[10, 50]]}]])

        await _collect(Paginator(source), station_unit, None)

        assert "date_begin" not in source.calls[0]
        assert "module_id" not in source.calls[0]
        assert source.calls[1]["date_begin"] == "501"

    @pytest.mark.asyncio
    async def test_consumer_failure_stops_requests(self, module_unit: SyncUnit) -> None:
        source = FakeMeasureSource(
            [
                [{"beg_time": 100, "value": [[1]]}],
                [{"beg_time": 200, "value": [[2]]}],
            ]
        )

        async def failing(points: list[DataPoint], next_cursor: datetime) -> None:
            raise RuntimeError("write failed")

        with pytest.raises(RuntimeError):
            await Paginator(source).for_each_page(module_unit, None, failing)

        assert len(source.calls) == 1

    @pytest.mark.asyncio
    async def test_breaking_out_of_iter_pages_stops_requests(self, module_unit: SyncUnit) -> None:
        source = FakeMeasureSource(
            [
                [{"beg_time": 100, "value": [[1]]}],
                [{"beg_time": 200, "value": [[2]]}],
            ]
        )
        pages = Paginator(source).iter_pages(module_unit, None)

        async for page in pages:
            assert page.next_cursor == from_epoch(101)
            break
        await pages.aclose()

        assert len(source.calls) == 1

    @pytest.mark.asyncio
    async def test_groups_without_values_still_advance(self, module_unit: SyncUnit) -> None:
        source = FakeMeasureSource([[{"beg_time": 700, "step_time": 60, "value": []}]])

        seen, _ = await _collect(Paginator(source), module_unit, from_epoch(100))

        assert seen == [([], from_epoch(701))]
        assert source.calls[1]["date_begin"] == "701"

    @pytest.mark.asyncio
    async def test_non_advancing_cursor_raises(self, module_unit: SyncUnit) -> None:
        source = FakeMeasureSource([[{"beg_time": 50, "value": [[1]]}]])

        with pytest.raises(DecodeError):
            await _collect(Paginator(source), module_unit, from_epoch(100))

    @pytest.mark.asyncio
    async def test_width_mismatch_surfaces(self, station_unit: SyncUnit) -> None:
        source = FakeMeasureSource([[{"beg_time": 50, "value": [[1]]}]])

        with pytest.raises(DecodeError):
            await _collect(Paginator(source), station_unit, None)

    @pytest.mark.asyncio
    async def test_unit_without_types_makes_no_request(self) -> None:
        source = FakeMeasureSource()
        unit = SyncUnit(device=TEST_DEVICE, data_types=())

        seen, _ = await _collect(Paginator(source), unit, None)

        assert seen == []
        assert source.calls == []
