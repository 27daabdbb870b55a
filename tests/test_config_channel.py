"""
tests/test_config_channel.py
----------------------------
Unit tests for shared/config_channel.py and models/target_config.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from models.target_config import EMPTY_TARGET_CONFIG, TargetConfig
from shared.config_channel import ConfigChannel


class TestTargetConfig:
    def test_aliases(self) -> None:
        cfg = TargetConfig.model_validate({"GCPProjectID": "proj", "SpannerInstanceID": "inst"})
        assert cfg.gcp_project_id == "proj"
        assert cfg.spanner_instance_id == "inst"
        assert cfg.is_configured
        assert cfg.model_dump(by_alias=True) == {"GCPProjectID": "proj", "SpannerInstanceID": "inst"}

    def test_field_names_accepted(self) -> None:
        cfg = TargetConfig(gcp_project_id="proj", spanner_instance_id="inst")
        assert cfg.is_configured

    def test_empty(self) -> None:
        assert EMPTY_TARGET_CONFIG.gcp_project_id == ""
        assert not EMPTY_TARGET_CONFIG.is_configured

    def test_immutable(self) -> None:
        with pytest.raises(PydanticValidationError):
            EMPTY_TARGET_CONFIG.gcp_project_id = "x"


class TestConfigChannel:
    def test_new_subscriber_gets_empty_config(self) -> None:
        received: list[TargetConfig] = []
        ConfigChannel().subscribe(received.append)
        assert received == [EMPTY_TARGET_CONFIG]

    def test_late_subscriber_gets_latest_only(self) -> None:
        channel = ConfigChannel()
        channel.publish(TargetConfig(gcp_project_id="a", spanner_instance_id="1"))
        channel.publish(TargetConfig(gcp_project_id="b", spanner_instance_id="2"))
        received: list[TargetConfig] = []
        channel.subscribe(received.append)
        assert [c.gcp_project_id for c in received] == ["b"]

    def test_publications_delivered_in_order(self) -> None:
        channel = ConfigChannel()
        received: list[str] = []
        channel.subscribe(lambda c: received.append(c.gcp_project_id))
        for name in ("a", "b", "c"):
            channel.publish({"GCPProjectID": name, "SpannerInstanceID": "inst"})
        assert received == ["", "a", "b", "c"]
        assert channel.current.gcp_project_id == "c"

    def test_unsubscribe(self) -> None:
        channel = ConfigChannel()
        received: list[TargetConfig] = []
        sub = channel.subscribe(received.append)
        sub.unsubscribe()
        sub.unsubscribe()
        channel.publish({"GCPProjectID": "x"})
        assert len(received) == 1
        assert channel.subscriber_count() == 0

    def test_failing_subscriber_does_not_stop_delivery(self) -> None:
        channel = ConfigChannel()

        def broken(_: TargetConfig) -> None:
            raise RuntimeError("boom")

        received: list[TargetConfig] = []
        channel.subscribe(broken)
        channel.subscribe(received.append)
        channel.publish({"GCPProjectID": "p", "SpannerInstanceID": "i"})
        assert received[-1].is_configured

    def test_initial_value(self) -> None:
        cfg = TargetConfig(gcp_project_id="p", spanner_instance_id="i")
        assert ConfigChannel(cfg).current is cfg
