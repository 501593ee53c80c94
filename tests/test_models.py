# tests/test_models.py
from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW, make_user
from stale_account_report.models import (
    RecordError,
    SkuLookup,
    UserRecord,
    parse_graph_datetime,
)


def test_parse_graph_datetime_handles_trailing_z():
    assert parse_graph_datetime("2024-06-01T12:00:00Z") == NOW


def test_parse_graph_datetime_converts_offsets_to_utc():
    parsed = parse_graph_datetime("2024-06-01T14:00:00+02:00")
    assert parsed == NOW
    assert parsed.tzinfo == timezone.utc


@pytest.mark.parametrize("value", [
    "2024-06-01T12:00:00.0000000Z",
    "2024-06-01T12:00:00.1234567Z",
    "2024-06-01T12:00:00.5Z",
])
def test_parse_graph_datetime_accepts_any_fraction_width(value):
    assert parse_graph_datetime(value).replace(microsecond=0) == NOW


def test_parse_graph_datetime_truncates_to_microseconds():
    assert parse_graph_datetime("2024-06-01T12:00:00.1234567Z").microsecond == 123456


def test_parse_graph_datetime_treats_naive_as_utc():
    assert parse_graph_datetime(datetime(2024, 6, 1, 12, 0)) == NOW


@pytest.mark.parametrize("value", [None, ""])
def test_parse_graph_datetime_empty_is_none(value):
    assert parse_graph_datetime(value) is None


def test_parse_graph_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        parse_graph_datetime("yesterday")


def test_user_record_from_graph():
    raw = make_user(
        "jane@contoso.com",
        last_sign_in=NOW - timedelta(days=100),
        last_non_interactive=NOW - timedelta(days=1),
        sku_ids=("sku-a", "sku-b"),
        officeLocation="Building 7",
        jobTitle="Analyst",
    )
    record = UserRecord.from_graph(raw)

    assert record.upn == "jane@contoso.com"
    assert record.created == NOW - timedelta(days=400)
    assert record.last_interactive_sign_in == NOW - timedelta(days=100)
    assert record.last_non_interactive_sign_in == NOW - timedelta(days=1)
    assert record.assigned_sku_ids == ("sku-a", "sku-b")
    assert record.office_location == "Building 7"
    assert record.upn_domain == "contoso.com"
    assert record.is_member


def test_user_record_without_sign_in_activity():
    raw = make_user("quiet@contoso.com")
    del raw["signInActivity"]
    record = UserRecord.from_graph(raw)
    assert record.last_interactive_sign_in is None
    assert record.last_non_interactive_sign_in is None


def test_user_record_missing_user_type_defaults_to_member():
    raw = make_user("x@contoso.com")
    raw["userType"] = None
    assert UserRecord.from_graph(raw).user_type == "Member"


def test_user_record_missing_created_raises():
    raw = make_user("x@contoso.com")
    del raw["createdDateTime"]
    with pytest.raises(RecordError) as exc:
        UserRecord.from_graph(raw)
    assert exc.value.record_id == "id-x@contoso.com"


def test_user_record_malformed_sign_in_raises():
    raw = make_user("x@contoso.com")
    raw["signInActivity"]["lastSignInDateTime"] = "??"
    with pytest.raises(RecordError):
        UserRecord.from_graph(raw)


def test_user_record_non_mapping_sign_in_activity_raises():
    raw = make_user("x@contoso.com", signInActivity="garbage")
    with pytest.raises(RecordError, match="signInActivity"):
        UserRecord.from_graph(raw)


@pytest.mark.parametrize("licenses", [[None], ["sku-a"], "sku-a"])
def test_user_record_malformed_licenses_raise(licenses):
    raw = make_user("x@contoso.com", assignedLicenses=licenses)
    with pytest.raises(RecordError, match="assignedLicenses"):
        UserRecord.from_graph(raw)


def test_upn_domain_without_at_sign():
    record = UserRecord.from_graph(make_user("no-at-sign"))
    assert record.upn_domain is None


def test_sku_lookup_is_case_insensitive():
    lookup = SkuLookup({"ABC-1": "E5"})
    assert lookup.available
    assert "abc-1" in lookup
    assert lookup.resolve("abc-1") == "E5"
    assert lookup.resolve("zzz") == "zzz"
    assert len(lookup) == 1


def test_unavailable_sku_lookup_resolves_nothing():
    lookup = SkuLookup.unavailable("403")
    assert not lookup.available
    assert lookup.reason == "403"
    assert lookup.get("abc") is None
    assert lookup.resolve("abc") == "abc"


def test_empty_subscription_list_is_still_available():
    assert SkuLookup.from_subscribed_skus([]).available
