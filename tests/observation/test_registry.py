"""
Tests for ObservationRegistry dispatch, global configuration and handlers.
"""

import logging

import pytest

from spanwise.observation import (
    AllMatchingCompositeObservationHandler,
    Context,
    FirstMatchingCompositeObservationHandler,
    ObservationHandler,
    ObservationRegistry,
    TagLoggingHandler,
    observed,
)


class ExplodingHandler(ObservationHandler):
    def __init__(self, calls):
        self.calls = calls

    def supports_context(self, context):
        return True

    def on_start(self, context):
        self.calls.append(("exploding", "start", context.name))
        raise RuntimeError("handler bug")

    def on_stop(self, context):
        raise RuntimeError("handler bug")


# ── Dispatch ─────────────────────────────────────────────────────────────────


class TestDispatch:
    def test_handlers_notified_in_registration_order_for_start_and_stop(self, calls, make_recorder):
        registry = ObservationRegistry()
        registry.register_handler(make_recorder("first"))
        registry.register_handler(make_recorder("second"))

        registry.observation("op").start().stop()

        assert calls == [
            ("first", "start", "op"),
            ("second", "start", "op"),
            ("first", "stop", "op"),
            ("second", "stop", "op"),
        ]

    def test_unsupporting_handler_never_called(self, calls, make_recorder):
        registry = ObservationRegistry()
        ignored = make_recorder("ignored", supports=False)
        registry.register_handler(ignored)

        obs = registry.observation("op").start()
        obs.error(ValueError("boom"))
        obs.stop()

        assert ignored.phases() == []

    def test_failing_handler_is_isolated(self, calls, make_recorder, caplog):
        registry = ObservationRegistry()
        registry.register_handler(ExplodingHandler(calls))
        registry.register_handler(make_recorder("after"))

        with caplog.at_level(logging.ERROR, logger="spanwise.observation.registry"):
            registry.observation("op").start().stop()

        assert ("after", "start", "op") in calls
        assert ("after", "stop", "op") in calls
        assert "ExplodingHandler failed during on_start" in caplog.text

    def test_for_each_supporting_handler_filters(self, make_recorder):
        registry = ObservationRegistry()
        yes = make_recorder("yes")
        no = make_recorder("no", supports=False)
        registry.register_handler(yes).register_handler(no)

        seen = []
        registry.for_each_supporting_handler(Context("op"), seen.append)
        assert seen == [yes]


# ── Global configuration ─────────────────────────────────────────────────────


class TestObservationConfig:
    def test_default_key_values_applied_before_user_tags(self, registry):
        registry.observation_config.key_value_provider(
            lambda ctx: {"application": "spanwise", "userType": "default"}
        )

        obs = registry.observation("op").low_cardinality_key_value("userType", "userType2")

        tags = {kv.key: kv.value for kv in obs.context.low_cardinality_key_values}
        assert tags == {"application": "spanwise", "userType": "userType2"}

    def test_predicate_makes_observation_noop(self, registry, recorder):
        registry.observation_config.observation_predicate(lambda name, ctx: name != "ignored")

        obs = registry.observation("ignored")
        assert obs.is_noop
        with obs:
            assert registry.current_observation is None

        registry.observation("kept").start().stop()
        assert recorder.phases("ignored") == []
        assert recorder.phases("kept") == ["start", "stop"]

    def test_filter_runs_before_on_stop(self, registry, recorder):
        seen_at_stop = []

        class StopSpy(ObservationHandler):
            def supports_context(self, context):
                return True

            def on_stop(self, context):
                seen_at_stop.append(context.get_low_cardinality_key_value("region"))

        registry.register_handler(StopSpy())
        registry.observation_config.observation_filter(lambda ctx: ctx.put_low_cardinality("region", "eu"))

        registry.observation("op").start().stop()
        assert seen_at_stop[0].value == "eu"

    def test_failing_key_value_provider_is_skipped(self, registry, recorder, caplog):
        registry.observation_config.key_value_provider(lambda ctx: 1 / 0)
        registry.observation_config.key_value_provider(lambda ctx: {"application": "spanwise"})

        @observed(name="work", registry=registry)
        def work():
            return "ok"

        with caplog.at_level(logging.ERROR, logger="spanwise.observation.registry"):
            assert work() == "ok"

        assert recorder.phases("work") == ["start", "stop"]
        assert recorder.contexts[0].get_low_cardinality_key_value("application").value == "spanwise"
        assert "Key value provider failed" in caplog.text

    def test_failing_predicate_counts_as_enabled(self, registry, recorder, caplog):
        registry.observation_config.observation_predicate(lambda name, ctx: {}["missing"])

        @observed(name="work", registry=registry)
        def work():
            return "ok"

        with caplog.at_level(logging.ERROR, logger="spanwise.observation.registry"):
            assert work() == "ok"

        assert recorder.phases("work") == ["start", "stop"]
        assert "Observation predicate failed for [work]" in caplog.text

    def test_rejecting_predicate_still_wins_over_failing_one(self, registry, recorder):
        registry.observation_config.observation_predicate(lambda name, ctx: {}["missing"])
        registry.observation_config.observation_predicate(lambda name, ctx: False)

        assert registry.observation("op").is_noop

    def test_noop_registry(self):
        registry = ObservationRegistry.NOOP
        assert registry.is_noop
        assert registry.observation("op").is_noop
        with pytest.raises(ValueError):
            registry.register_handler(TagLoggingHandler())


# ── Handlers ─────────────────────────────────────────────────────────────────


class TestHandlers:
    def test_first_matching_composite_uses_only_first_supporting(self, calls, make_recorder):
        a = make_recorder("a", supports=False)
        b = make_recorder("b")
        c = make_recorder("c")
        registry = ObservationRegistry()
        registry.register_handler(FirstMatchingCompositeObservationHandler(a, b, c))

        registry.observation("op").start().stop()
        assert calls == [("b", "start", "op"), ("b", "stop", "op")]

    def test_all_matching_composite_uses_every_supporting(self, calls, make_recorder):
        a = make_recorder("a")
        b = make_recorder("b", supports=False)
        c = make_recorder("c")
        registry = ObservationRegistry()
        registry.register_handler(AllMatchingCompositeObservationHandler(a, b, c))

        registry.observation("op").start().stop()
        assert calls == [
            ("a", "start", "op"),
            ("c", "start", "op"),
            ("a", "stop", "op"),
            ("c", "stop", "op"),
        ]

    def test_tag_logging_handler_logs_tag_value(self, caplog):
        registry = ObservationRegistry()
        registry.register_handler(TagLoggingHandler())

        with caplog.at_level(logging.INFO, logger="spanwise.observation.handlers"):
            with registry.observation("user.name").low_cardinality_key_value("userType", "userType2"):
                pass

        assert "Before running the observation for context [user.name], userType [userType2]" in caplog.text
        assert "After running the observation for context [user.name], userType [userType2]" in caplog.text

    def test_tag_logging_handler_defaults_to_unknown(self, caplog):
        registry = ObservationRegistry()
        registry.register_handler(TagLoggingHandler())

        with caplog.at_level(logging.INFO, logger="spanwise.observation.handlers"):
            registry.observation("other").start().stop()

        assert "context [other], userType [UNKNOWN]" in caplog.text
