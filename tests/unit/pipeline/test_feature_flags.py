"""
crate-pipeline — unit tests for feature flag synthesis

File: tests/unit/pipeline/test_feature_flags.py

Purpose
- Validate the three-way mapping from a feature selection to cargo flags.
"""

from __future__ import annotations

from crate_pipeline.pipeline.features import ALL_FEATURES_FLAG, command, flags_for

try:
    from hypothesis import given, settings
    from hypothesis import strategies as st
except ModuleNotFoundError:
    HYPOTHESIS_AVAILABLE = False
else:
    HYPOTHESIS_AVAILABLE = True


def test_unspecified_selection_enables_all_features() -> None:
    assert flags_for(None) == "--all-features"
    assert ALL_FEATURES_FLAG == "--all-features"


def test_empty_selection_yields_no_flags() -> None:
    assert flags_for([]) == ""
    assert flags_for(()) == ""


def test_selection_is_passed_through_in_order() -> None:
    assert flags_for(["a", "b"]) == "--features a,b"
    assert flags_for(("rt_tokio_1", "serde")) == "--features rt_tokio_1,serde"


def test_command_drops_empty_fragments() -> None:
    assert command("cargo test", flags_for([])) == "cargo test"
    assert command("cargo doc --no-deps", flags_for(None)) == "cargo doc --no-deps --all-features"
    assert command("cargo clippy", flags_for(["x"]), "-- -D warnings") == (
        "cargo clippy --features x -- -D warnings"
    )


if HYPOTHESIS_AVAILABLE:
    _feature_names = st.text(
        alphabet="abcdefghijklmnopqrstuvwxyz0123456789_-", min_size=1, max_size=12
    )

    @settings(max_examples=100, deadline=None)
    @given(features=st.lists(_feature_names, min_size=1, max_size=6))
    def test_populated_selection_round_trips_through_flags(features: list[str]) -> None:
        rendered = flags_for(features)

        assert rendered.startswith("--features ")
        assert rendered.removeprefix("--features ").split(",") == features
