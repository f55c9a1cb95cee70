"""
Tests for xdp_mcp.execution._job_spec.
"""

import pytest

from xdp_mcp.execution import JobSpec


def test_defaults():
    spec = JobSpec.from_arguments(dataplane_id="42")
    assert spec.job_type == "SPARK"
    assert spec.image == "spark:3.3.0"
    assert spec.image_pull_policy == "IfNotPresent"
    assert spec.stages == ["main"]
    assert spec.execution_type == "Python"
    assert spec.execution_mode == "cluster"
    assert (spec.driver_cores, spec.driver_memory, spec.driver_memory_overhead) == (1, "1g", "512m")
    assert spec.executor_instances == 2
    assert spec.dynamic_allocation_enabled is False
    assert (spec.dynamic_allocation_initial, spec.dynamic_allocation_min, spec.dynamic_allocation_max) == (2, 1, 10)
    assert spec.time_to_live_seconds == 3600
    assert spec.data_store_ids == []
    assert spec.spark_conf == {}


def test_none_values_are_ignored():
    spec = JobSpec.from_arguments(dataplane_id="42", image=None, driver_cores=None)
    assert spec.image == "spark:3.3.0"
    assert spec.driver_cores == 1


def test_integer_dataplane_id_is_accepted():
    assert JobSpec.from_arguments(dataplane_id=7).dataplane_id == "7"


@pytest.mark.parametrize("dataplane_id", [None, "", "   ", True])
def test_dataplane_id_required(dataplane_id):
    with pytest.raises(ValueError, match="dataplane_id"):
        JobSpec.from_arguments(dataplane_id=dataplane_id)


def test_unknown_field_rejected():
    with pytest.raises(ValueError, match="unknown_thing"):
        JobSpec.from_arguments(dataplane_id="42", unknown_thing=1)


@pytest.mark.parametrize(
    "field, value",
    [
        ("job_type", "Ruby"),
        ("image_pull_policy", "Sometimes"),
        ("execution_type", "Scala"),
        ("execution_mode", "local"),
    ],
)
def test_enum_fields_validated(field, value):
    with pytest.raises(ValueError, match=field):
        JobSpec.from_arguments(dataplane_id="42", **{field: value})


@pytest.mark.parametrize(
    "field, value",
    [
        ("driver_cores", 0),
        ("executor_instances", -1),
        ("executor_cores", "2"),
        ("time_to_live_seconds", 0),
        ("dynamic_allocation_min", -1),
    ],
)
def test_counts_validated(field, value):
    with pytest.raises(ValueError, match=field):
        JobSpec.from_arguments(dataplane_id="42", **{field: value})


def test_dynamic_allocation_bounds():
    with pytest.raises(ValueError, match="dynamic_allocation_min"):
        JobSpec.from_arguments(
            dataplane_id="42", dynamic_allocation_min=5, dynamic_allocation_max=2
        )


def test_to_payload_camel_case():
    spec = JobSpec.from_arguments(
        dataplane_id="42",
        name="nightly",
        data_store_ids=[3, 4],
        spark_conf={"spark.sql.shuffle.partitions": "8"},
        project_id="p1",
    )
    payload = spec.to_payload()
    assert payload["dataplaneId"] == 42
    assert payload["jobType"] == "SPARK"
    assert payload["dataStoreIds"] == [3, 4]
    assert payload["sparkConf"] == {"spark.sql.shuffle.partitions": "8"}
    assert payload["timeToLiveSeconds"] == 3600
    assert payload["name"] == "nightly"
    assert payload["projectId"] == "p1"
    assert "description" not in payload
    assert "selectedTemplate" not in payload


def test_to_payload_keeps_non_numeric_dataplane():
    assert JobSpec("dp-east").to_payload()["dataplaneId"] == "dp-east"
