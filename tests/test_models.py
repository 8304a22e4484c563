from datetime import date

import pytest
from pydantic import ValidationError

from app.models import (
    BatchSummary,
    BulkImportRequest,
    DiscoveryFilter,
    SyncOverrides,
    SyncRequest,
)
from app.status import MediaStatus


def test_sync_request_accepts_camel_case_fields():
    request = SyncRequest.model_validate(
        {
            "tmdbId": "76666",
            "type": "tv",
            "status": "Completed",
            "chineseTitle": "  斗罗大陆 ",
            "synopsis": "   ",
            "firstAirDate": "2018-01-20T00:00:00Z",
            "voteCount": 12,
        }
    )

    assert request.external_id == 76666
    assert request.media_type == "tv"
    overrides = request.overrides()
    assert overrides.status is MediaStatus.COMPLETE
    assert overrides.native_title == "斗罗大陆"
    assert overrides.synopsis is None
    assert overrides.first_air_date == date(2018, 1, 20)
    assert overrides.vote_count == 12


def test_sync_overrides_reject_unknown_status():
    with pytest.raises(ValidationError):
        SyncOverrides.model_validate({"status": "paused"})


def test_sync_overrides_reject_out_of_range_votes():
    with pytest.raises(ValidationError):
        SyncOverrides.model_validate({"voteAverage": 11})


def test_discovery_filter_defaults_target_chinese_animation():
    params = DiscoveryFilter().to_params(3)

    assert params == {
        "sort_by": "popularity.desc",
        "include_adult": "false",
        "page": 3,
        "with_genres": "16",
        "without_genres": "10751,10762",
        "with_origin_country": "CN",
        "with_original_language": "zh",
    }


def test_discovery_filter_sanitises_keywords():
    discovery_filter = DiscoveryFilter.model_validate(
        {"with_keywords": "210024, abc, -4, 0, 210024, 9717", "with_origin_country": "cn"}
    )

    assert discovery_filter.with_keywords == [210024, 9717]
    assert discovery_filter.with_origin_country == "CN"
    assert discovery_filter.to_params(1)["with_keywords"] == "210024,9717"


def test_china_movie_presets_drop_animation_requirement():
    discovery_filter = DiscoveryFilter.preset("movie_china_popular")

    assert discovery_filter.media_type == "movie"
    assert discovery_filter.with_genres == []
    assert 16 in discovery_filter.without_genres
    assert "with_genres" not in discovery_filter.to_params(1)


def test_unknown_preset_lists_valid_names():
    with pytest.raises(ValueError, match="Invalid preset 'latest'"):
        DiscoveryFilter.preset("latest")


def test_bulk_import_request_resolution():
    explicit = BulkImportRequest.model_validate(
        {"filter": {"type": "movie", "with_genres": "16,14"}, "maxPages": 2}
    )
    preset = BulkImportRequest.model_validate({"type": "top_rated"})
    default = BulkImportRequest.model_validate({})

    assert explicit.resolve_filter().with_genres == [16, 14]
    assert explicit.max_pages == 2
    assert preset.resolve_filter().sort_by == "vote_average.desc"
    assert default.resolve_filter() == DiscoveryFilter()
    assert default.quota == 20


def test_batch_summary_message():
    summary = BatchSummary(imported=3, updated=1, skipped=2, errors=1)

    assert summary.processed == 5
    assert summary.message() == "Import complete: 3 imported, 1 updated, 2 skipped, 1 errors"
