import dataclasses
from datetime import timedelta

import pytest

from transfer_board.domain.models.transfer import (
    UNKNOWN_CLIENT,
    UNKNOWN_PRODUCT,
    ProductLine,
    TransferRecord,
)
from transfer_board.domain.rules.aggregation import aggregate
from transfer_board.domain.rules.assignment import UNASSIGNED, AssignmentResolver, AssignmentTable
from transfer_board.domain.rules.time_slot import SlotKey, TimeCutoffConfig, TimeSlotClassifier

CUTOFF = TimeCutoffConfig(raw="18:07")


def _resolver(mapping=None):
    return AssignmentResolver(AssignmentTable.from_mapping(mapping or {"Bader": ["tanger"]}))


def _run(records, reference_now, cutoff=CUTOFF, resolver=None):
    return aggregate(records, resolver or _resolver(), TimeSlotClassifier(), cutoff, reference_now)


def test_single_record_grouped_under_owner(record_factory, reference_now):
    view = _run([record_factory(city="Tanger", brand="Acme", products=[("Box", 2)])], reference_now)

    group = view.group("Bader")
    assert group is not None
    assert group.total_count == 1
    bucket = group.buckets[SlotKey.MORNING]
    summary = bucket.clients["Acme"]
    assert summary.transfer_count == 1
    assert summary.product_quantities == {"Box": 2}


def test_same_city_brand_product_records_are_merged(record_factory, reference_now):
    records = [record_factory(products=[("Box", 2)]), record_factory(products=[("Box", 3)])]

    view = _run(records, reference_now)

    summary = view.group("Bader").buckets[SlotKey.MORNING].clients["Acme"]
    assert summary.transfer_count == 2
    assert summary.product_quantities == {"Box": 5}
    assert view.group("Bader").total_count == 2


def test_unknown_city_grouped_under_unassigned(record_factory, reference_now):
    view = _run([record_factory(city="Rabat")], reference_now)

    assert list(view.groups) == [UNASSIGNED]
    assert view.group(UNASSIGNED).total_count == 1


def test_record_without_products_still_counts(reference_now):
    created = reference_now.replace(hour=10)
    record = TransferRecord(destination_city="tanger", created_at=created, updated_at=created, client_brand_name="Acme")

    view = _run([record], reference_now)

    summary = view.group("Bader").buckets[SlotKey.MORNING].clients["Acme"]
    assert summary.transfer_count == 1
    assert summary.product_quantities == {}


def test_invalid_cutoff_puts_every_record_in_error_bucket(record_factory, reference_now):
    records = [
        record_factory(city="Tanger"),
        record_factory(city="Rabat", created_at=reference_now.replace(hour=19)),
    ]

    view = _run(records, reference_now, cutoff=TimeCutoffConfig(raw="25:99"))

    assert view.total_count() == 2
    for group in view.groups.values():
        assert list(group.buckets) == [SlotKey.ERROR]


def test_missing_brand_and_product_name_use_sentinels(record_factory, reference_now):
    view = _run([record_factory(brand=None, products=[(None, 4)])], reference_now)

    summary = view.group("Bader").buckets[SlotKey.MORNING].clients[UNKNOWN_CLIENT]
    assert summary.product_quantities == {UNKNOWN_PRODUCT: 4}


def test_empty_brand_string_uses_sentinel(record_factory, reference_now):
    view = _run([record_factory(brand="")], reference_now)

    assert UNKNOWN_CLIENT in view.group("Bader").buckets[SlotKey.MORNING].clients


def test_quantity_defaults(reference_now):
    created = reference_now.replace(hour=9)
    record = TransferRecord(
        destination_city="tanger",
        created_at=created,
        updated_at=created,
        client_brand_name="Acme",
        products=(
            ProductLine("Missing", None),
            ProductLine("Zero", 0),
            ProductLine("Negative", -3),
            ProductLine("Text", "4"),
            ProductLine("Garbage", "many"),
            ProductLine("WholeFloat", 3.0),
            ProductLine("FractionFloat", 2.5),
        ),
    )

    view = _run([record], reference_now)

    quantities = view.group("Bader").buckets[SlotKey.MORNING].clients["Acme"].product_quantities
    assert quantities == {
        "Missing": 1,
        "Zero": 0,
        "Negative": 1,
        "Text": 4,
        "Garbage": 1,
        "WholeFloat": 3,
        "FractionFloat": 1,
    }


def test_product_order_is_first_seen(record_factory, reference_now):
    records = [
        record_factory(products=[("Tape", 1), ("Box", 1)]),
        record_factory(products=[("Box", 1), ("Label", 2)]),
    ]

    view = _run(records, reference_now)

    quantities = view.group("Bader").buckets[SlotKey.MORNING].clients["Acme"].product_quantities
    assert list(quantities) == ["Tape", "Box", "Label"]
    assert quantities == {"Tape": 1, "Box": 2, "Label": 2}


def test_totals_do_not_depend_on_record_order(record_factory, reference_now):
    records = [
        record_factory(products=[("Tape", 1), ("Box", 1)]),
        record_factory(city="Safi", brand="Zed", products=[("Box", 7)]),
        record_factory(products=[("Box", 1), ("Label", 2)]),
        record_factory(created_at=reference_now.replace(hour=19), products=[("Box", 5)]),
    ]
    resolver = _resolver({"Bader": ["tanger"], "Salah": ["safi"]})

    forward = _run(records, reference_now, resolver=resolver)
    backward = _run(list(reversed(records)), reference_now, resolver=resolver)

    def totals(view):
        out = {}
        for assignee, group in view.groups.items():
            for key, bucket in group.buckets.items():
                for brand, summary in bucket.clients.items():
                    out[(assignee, key, brand)] = (summary.transfer_count, dict(sorted(summary.product_quantities.items())))
        return out

    assert totals(forward) == totals(backward)
    morning = forward.group("Bader").buckets[SlotKey.MORNING].clients["Acme"].product_quantities
    reversed_morning = backward.group("Bader").buckets[SlotKey.MORNING].clients["Acme"].product_quantities
    assert list(morning) == ["Tape", "Box", "Label"]
    assert list(reversed_morning) == ["Box", "Label", "Tape"]


def test_aggregate_is_idempotent(record_factory, reference_now):
    records = [record_factory(), record_factory(city="Rabat", brand=None, products=[])]
    resolver = _resolver()

    first = _run(records, reference_now, resolver=resolver)
    second = _run(records, reference_now, resolver=resolver)

    assert first == second


def test_latest_update_is_maximum(record_factory, reference_now):
    base = reference_now.replace(hour=8)
    records = [
        record_factory(created_at=base, updated_at=base + timedelta(hours=3)),
        record_factory(created_at=base, updated_at=base + timedelta(hours=1)),
    ]

    view = _run(records, reference_now)

    summary = view.group("Bader").buckets[SlotKey.MORNING].clients["Acme"]
    assert summary.latest_update == base + timedelta(hours=3)


def test_ordered_buckets_put_morning_before_evening(record_factory, reference_now):
    records = [
        record_factory(created_at=reference_now.replace(hour=19)),
        record_factory(created_at=reference_now.replace(hour=8)),
    ]

    view = _run(records, reference_now)

    group = view.group("Bader")
    assert list(group.buckets) == [SlotKey.EVENING, SlotKey.MORNING]
    assert [bucket.slot.key for bucket in group.ordered_buckets()] == [SlotKey.MORNING, SlotKey.EVENING]


def test_empty_input_yields_empty_view(reference_now):
    view = _run([], reference_now)

    assert view.groups == {}
    assert view.record_count == 0


def test_latest_update_mixes_naive_and_aware_instants(record_factory, reference_now):
    created = reference_now.replace(hour=8)
    aware = reference_now.replace(hour=10)
    naive = reference_now.replace(hour=11, tzinfo=None)
    records = [
        record_factory(created_at=created, updated_at=aware),
        record_factory(created_at=created, updated_at=naive),
    ]

    view = _run(records, reference_now)

    summary = view.group("Bader").buckets[SlotKey.MORNING].clients["Acme"]
    assert summary.transfer_count == 2
    assert summary.latest_update == naive.replace(tzinfo=reference_now.tzinfo)


def test_view_cannot_be_modified_after_build(record_factory, reference_now):
    view = _run([record_factory(products=[("Box", 2)])], reference_now)
    group = view.group("Bader")
    summary = group.buckets[SlotKey.MORNING].clients["Acme"]

    with pytest.raises(TypeError):
        summary.product_quantities["Box"] = 99
    with pytest.raises(TypeError):
        group.buckets[SlotKey.MORNING].clients["Other"] = summary
    with pytest.raises(TypeError):
        view.groups[UNASSIGNED] = group
    with pytest.raises(dataclasses.FrozenInstanceError):
        summary.transfer_count = 5

    assert summary.product_quantities == {"Box": 2}
