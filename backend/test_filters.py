"""Tests for the activity filter engine."""
from datetime import datetime, timezone

import pytest

from conftest import make_activity
from dashboard.services import filters
from dashboard.services.filters import (
    ActivityType,
    FilterSpec,
    FilterState,
    IncludeOption,
    build_spec,
    parse_optional_date,
    parse_optional_float,
)
from dashboard.services.geo import LatLng, PositionFilter
from dashboard.services.polyline import encode_polyline

LONDON = LatLng(51.50, -0.11)

# Points due north of LONDON: 0.035973 deg of latitude is ~4000 m, 0.053960 deg ~6000 m
POLYLINE_4KM = encode_polyline([(51.60, -0.11), (51.535973, -0.11), (51.58, -0.11)])
POLYLINE_6KM = encode_polyline([(51.60, -0.11), (51.553960, -0.11)])


def included(activity, **criteria) -> bool:
    return filters.apply([activity], FilterSpec(**criteria)) == [activity]


class TestIncludeOption:

    @pytest.mark.parametrize("option,flag,expected", [
        (IncludeOption.INCLUDE, True, True),
        (IncludeOption.INCLUDE, False, True),
        (IncludeOption.EXCLUDE, True, False),
        (IncludeOption.EXCLUDE, False, True),
        (IncludeOption.ONLY, True, True),
        (IncludeOption.ONLY, False, False),
    ])
    def test_admits(self, option, flag, expected):
        assert option.admits(flag) is expected

    def test_commute(self):
        commute = make_activity(commute=True)
        leisure = make_activity(commute=False)

        assert included(commute, include_commutes=IncludeOption.INCLUDE)
        assert not included(commute, include_commutes=IncludeOption.EXCLUDE)
        assert included(leisure, include_commutes=IncludeOption.EXCLUDE)
        assert not included(leisure, include_commutes=IncludeOption.ONLY)

    def test_private(self):
        private = make_activity(private=True)

        assert not included(private, include_private=IncludeOption.EXCLUDE)
        assert included(private, include_private=IncludeOption.ONLY)

    def test_virtual_means_virtual_ride(self):
        virtual = make_activity(type="VirtualRide")
        outdoor = make_activity(type="Ride")

        assert not included(virtual, include_virtual=IncludeOption.EXCLUDE)
        assert included(virtual, include_virtual=IncludeOption.ONLY)
        assert not included(outdoor, include_virtual=IncludeOption.ONLY)


class TestTitle:

    def test_case_insensitive_substring(self):
        activity = make_activity(name="Evening Gravel Loop")

        assert included(activity, title_text="gravel")
        assert included(activity, title_text="LOOP")
        assert not included(activity, title_text="road")

    def test_empty_title_is_no_constraint(self):
        assert FilterSpec(title_text="").title_text is None
        assert included(make_activity(name="Anything"), title_text="")


class TestSpeed:

    def test_speed_is_converted_to_kmh(self):
        activity = make_activity(average_speed=5.0)

        assert activity.average_speed_kmh == pytest.approx(18.0)

    def test_min_average_speed(self):
        activity = make_activity(average_speed=5.0)

        assert not included(activity, min_avg_speed=20)
        assert included(activity, min_avg_speed=15)

    def test_min_average_speed_boundary_is_inclusive(self):
        assert included(make_activity(average_speed=5.0), min_avg_speed=18.0)

    def test_speed_range_is_strict(self):
        activity = make_activity(average_speed=5.0)

        assert included(activity, avg_speed_between=(15, 20))
        assert not included(activity, avg_speed_between=(18, 30))
        assert not included(activity, avg_speed_between=(0, 18))

    def test_missing_speed_fails_speed_criteria(self):
        activity = make_activity(average_speed=None)

        assert not included(activity, min_avg_speed=1)
        assert not included(activity, avg_speed_between=(0, 100))
        assert included(activity)


class TestDistance:

    def test_within_bounds(self):
        activity = make_activity(distance=10500)

        assert included(activity, min_distance=10, max_distance=11)
        assert not included(activity, max_distance=10)
        assert not included(activity, min_distance=11)

    def test_bounds_are_inclusive(self):
        activity = make_activity(distance=10000)

        assert included(activity, min_distance=10)
        assert included(activity, max_distance=10)

    def test_zero_bound_is_a_constraint(self):
        assert not included(make_activity(distance=10500), max_distance=0)
        assert included(make_activity(distance=0), max_distance=0)

    def test_missing_distance_fails(self):
        assert not included(make_activity(distance=None), min_distance=0)


class TestDates:

    def test_before_and_after(self):
        activity = make_activity(start_date="2023-05-01T07:30:00Z")

        assert included(activity, before=datetime(2023, 5, 2, tzinfo=timezone.utc))
        assert not included(activity, before=datetime(2023, 5, 1, tzinfo=timezone.utc))
        assert included(activity, after=datetime(2023, 5, 1, tzinfo=timezone.utc))
        assert not included(activity, after=datetime(2023, 5, 2, tzinfo=timezone.utc))

    def test_boundary_instant_is_excluded(self):
        activity = make_activity(start_date="2023-05-01T00:00:00Z")
        midnight = datetime(2023, 5, 1, tzinfo=timezone.utc)

        assert not included(activity, before=midnight)
        assert not included(activity, after=midnight)

    def test_naive_bounds_are_utc(self):
        activity = make_activity(start_date="2023-05-01T07:30:00Z")

        assert included(activity, after=datetime(2023, 5, 1, 7, 0))
        assert not included(activity, after=datetime(2023, 5, 1, 8, 0))

    def test_missing_start_date_fails(self):
        activity = make_activity(start_date="not a date")

        assert activity.start_date is None
        assert not included(activity, before=datetime(2030, 1, 1))


class TestSportTypes:

    def test_membership(self):
        ride = make_activity(type="Ride")
        run = make_activity(type="Run")

        assert included(ride, types={ActivityType.RIDE, ActivityType.HIKE})
        assert not included(run, types={ActivityType.RIDE})
        assert included(run, types={"Run"})

    def test_empty_set_excludes_everything(self):
        collection = [make_activity(id=i, type=t) for i, t in enumerate(["Ride", "Run", "Swim"])]

        assert filters.apply(collection, FilterSpec(types=frozenset())) == []

    def test_sentinel_equals_absent(self):
        collection = [make_activity(id=i, type=t) for i, t in enumerate(["Ride", "Run", "Yoga"])]

        with_sentinel = filters.apply(collection, FilterSpec(types={ActivityType.ALL_SPORT_TYPES, ActivityType.RUN}))

        assert with_sentinel == filters.apply(collection, FilterSpec())
        assert with_sentinel == collection


class TestPosition:

    def test_point_within_radius(self):
        activity = make_activity(map={"summary_polyline": POLYLINE_4KM})

        assert included(activity, position=PositionFilter(LONDON, 5000))

    def test_point_outside_radius(self):
        activity = make_activity(map={"summary_polyline": POLYLINE_6KM})

        assert not included(activity, position=PositionFilter(LONDON, 5000))

    def test_no_map_fails(self):
        assert not included(make_activity(map=None), position=PositionFilter(LONDON, 5000))
        assert not included(make_activity(map={"summary_polyline": ""}), position=PositionFilter(LONDON, 5000))

    def test_distance_to(self):
        assert LONDON.distance_to(51.535973, -0.11) == pytest.approx(4000, abs=1)


class TestApply:

    def test_conjunction(self):
        activity = make_activity(name="Commute home", commute=True, average_speed=7.0, distance=12000)

        assert included(activity, title_text="home", min_avg_speed=20, min_distance=10)
        assert not included(activity, title_text="home", min_avg_speed=30, min_distance=10)
        assert not included(activity, title_text="home", include_commutes=IncludeOption.EXCLUDE)

    def test_preserves_order_and_is_idempotent(self):
        collection = [
            make_activity(id=i, average_speed=speed)
            for i, speed in enumerate([2.0, 6.0, 3.0, 8.0, 5.5])
        ]
        spec = FilterSpec(min_avg_speed=15)

        once = filters.apply(collection, spec)

        assert [a.id for a in once] == [1, 3, 4]
        assert filters.apply(once, spec) == once

    def test_malformed_fields_never_raise(self):
        activity = make_activity(
            name=None, distance="far", average_speed=None, type=None,
            start_date=None, map="nope", commute=None,
        )
        spec = FilterSpec(
            include_commutes=IncludeOption.ONLY, title_text="x", min_avg_speed=1, min_distance=1,
            before=datetime(2030, 1, 1), types={"Ride"}, position=PositionFilter(LONDON, 10),
        )

        assert filters.apply([activity], spec) == []


class TestSummaryAndPagination:

    def test_summarize(self):
        collection = [
            make_activity(id=1, distance=10000, total_elevation_gain=100, moving_time=3600),
            make_activity(id=2, distance=5500, total_elevation_gain=50.5, moving_time=1500),
        ]

        summary = filters.summarize(collection)

        assert summary.count == 2
        assert summary.total_distance_km == pytest.approx(15.5)
        assert summary.total_elevation_m == pytest.approx(150.5)
        assert summary.total_moving_time_s == 5100
        assert summary.moving_time_text == "1h25m"

    def test_summarize_empty(self):
        summary = filters.summarize([])

        assert summary.count == 0
        assert summary.moving_time_text == "0h0m"

    def test_paginate(self):
        collection = [make_activity(id=i) for i in range(7)]

        assert [a.id for a in filters.paginate(collection, 0, 3)] == [0, 1, 2]
        assert [a.id for a in filters.paginate(collection, 6, 3)] == [6]
        assert len(filters.paginate(collection, 0, -1)) == 7


class TestCoercion:

    @pytest.mark.parametrize("value,expected", [
        ("12.5", 12.5),
        (" 3 ", 3.0),
        (7, 7.0),
        ("", None),
        ("abc", None),
        (None, None),
        ("nan", None),
    ])
    def test_parse_optional_float(self, value, expected):
        assert parse_optional_float(value) == expected

    def test_parse_optional_date(self):
        assert parse_optional_date("2023-05-01") == datetime(2023, 5, 1, tzinfo=timezone.utc)
        assert parse_optional_date("2023-05-01T10:00:00Z") == datetime(2023, 5, 1, 10, tzinfo=timezone.utc)
        assert parse_optional_date("yesterday") is None
        assert parse_optional_date("") is None

    def test_build_spec_ignores_invalid_numbers(self):
        spec = build_spec({"min_distance": "ten", "max_distance": "12", "include_private": "exclude"})

        assert spec.min_distance is None
        assert spec.max_distance == 12.0
        assert spec.include_private is IncludeOption.EXCLUDE

    def test_build_spec_types_from_text(self):
        assert build_spec({"types": "Ride, Run"}).types == frozenset({"Ride", "Run"})
        assert build_spec({"types": ""}).types == frozenset()

    def test_build_spec_rejects_unknown_criterion(self):
        with pytest.raises(KeyError):
            build_spec({"colour": "red"})


class TestFilterState:

    def setup_method(self):
        self.collection = [
            make_activity(id=1, type="Ride", commute=True, average_speed=6.0),
            make_activity(id=2, type="Run", average_speed=3.0),
            make_activity(id=3, type="VirtualRide", average_speed=9.0),
        ]
        self.state = FilterState(self.collection)

    def test_defaults_show_everything(self):
        assert self.state.filtered == self.collection

    def test_setters_recompute(self):
        self.state.set_include_virtual(IncludeOption.EXCLUDE)
        assert [a.id for a in self.state.filtered] == [1, 2]

        self.state.set_min_avg_speed("15")
        assert [a.id for a in self.state.filtered] == [1]

        self.state.set_min_avg_speed("not a number")
        assert [a.id for a in self.state.filtered] == [1, 2]

    def test_change_resets_page(self):
        self.state.page = 3
        self.state.set_title_text("ride")
        assert self.state.page == 0

    def test_reset(self):
        self.state.set_types([])
        assert self.state.filtered == []

        self.state.reset()
        assert self.state.filtered == self.collection

    def test_position_setter(self):
        self.state.set_position_around(LONDON.lat, LONDON.lng, 5000)
        assert self.state.filtered == []

    def test_summary_and_page(self):
        self.state.set_types(["Ride", "VirtualRide"])

        assert self.state.summary().count == 2
        assert [a.id for a in self.state.current_page(1)] == [1]
