# tests/unit/test_player.py
"""Unit tests for concurrent scenario playing."""

import pytest
import asyncio
import threading
import time

from scenario_player.core import ClientPool
from scenario_player.scenarios import (
    OutcomeKind,
    Player,
    ResultStatus,
    ScenarioState,
    StepOutcome,
)

from tests.mocks import (
    AsyncRecordingExtension,
    BlockingExtension,
    BlockingStepExecutor,
    MockHttpClient,
    MockStepExecutor,
    RecordingExtension,
    make_scenario,
)


def make_player(concurrency, executor, **kwargs):
    return Player(ClientPool(concurrency, client_factory=MockHttpClient), executor, **kwargs)


@pytest.mark.unit
class TestPlayer:
    """Test the concurrency orchestrator."""

    def test_requires_client_pool(self, mock_executor):
        with pytest.raises(TypeError):
            Player(3, mock_executor)

    def test_create_builds_pool(self, mock_executor):
        player = Player.create(3, mock_executor)
        assert player.concurrency == 3
        assert player.pool.size == 3

    @pytest.mark.asyncio
    async def test_empty_batch(self, mock_executor):
        results = await make_player(2, mock_executor).run_multi([])

        assert results == []
        assert mock_executor.calls == []

    @pytest.mark.asyncio
    async def test_one_result_per_scenario_in_input_order(self, scenarios):
        # Earlier scenarios are slower so they finish last
        executor = MockStepExecutor(delays={f"scenario{i}": 0.01 * (5 - i) for i in range(5)})

        results = await make_player(5, executor).run_multi(scenarios)

        assert [r.scenario_name for r in results] == [s.name for s in scenarios]
        assert results.statuses() == [ResultStatus.COMPLETED] * 5

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, scenarios):
        executor = MockStepExecutor(delay=0.01)
        player = make_player(2, executor)

        await player.run_multi(scenarios)

        assert executor.max_active == 2
        assert player.max_running == 2
        assert player.pool.max_in_use == 2

    @pytest.mark.asyncio
    async def test_concurrency_one_is_sequential(self, scenarios):
        executor = MockStepExecutor(delay=0.001)

        await make_player(1, executor).run_multi(scenarios)

        assert executor.max_active == 1
        assert [call[0] for call in executor.calls] == [
            name for s in scenarios for name in (s.name, s.name)
        ]

    @pytest.mark.asyncio
    async def test_slot_held_by_one_scenario_at_a_time(self, scenarios):
        executor = MockStepExecutor(delay=0.005)

        await make_player(3, executor).run_multi(scenarios * 2)

        assert executor.slot_conflicts == 0
        for scenario in scenarios:
            slots = {call[2] for call in executor.calls_for(scenario.name)}
            assert len(slots) <= 2

    @pytest.mark.asyncio
    async def test_each_run_keeps_one_slot(self):
        executor = MockStepExecutor(delay=0.002)
        scenario = make_scenario("long", n_steps=5)

        await make_player(3, executor).run_multi([scenario])

        assert len({call[2] for call in executor.calls}) == 1

    @pytest.mark.asyncio
    async def test_failure_does_not_affect_other_scenarios(self, scenarios):
        executor = MockStepExecutor(outcomes={
            ("scenario2", "step0"): StepOutcome.transport_error("connection refused"),
        })

        results = await make_player(2, executor).run_multi(scenarios)

        assert results.statuses() == [
            ResultStatus.COMPLETED,
            ResultStatus.COMPLETED,
            ResultStatus.ERRORED,
            ResultStatus.COMPLETED,
            ResultStatus.COMPLETED,
        ]
        assert results[2].failed_step_index == 0
        assert results[2].failure.kind == OutcomeKind.TRANSPORT_ERROR
        assert len(executor.calls_for("scenario2")) == 1
        assert results.exit_code == 1

    @pytest.mark.asyncio
    async def test_values_are_isolated_between_runs(self):
        executor = MockStepExecutor(values={
            ("a", "step0"): {"token": "a-token"},
            ("b", "step0"): {"token": "b-token"},
        })
        batch = [make_scenario("a"), make_scenario("b")]

        results = await make_player(2, executor).run_multi(batch)

        assert results[0].values == {"token": "a-token"}
        assert results[1].values == {"token": "b-token"}

    @pytest.mark.asyncio
    async def test_same_scenario_twice_runs_independently(self):
        executor = MockStepExecutor(values={"step0": {"n": 1}})
        scenario = make_scenario("twice", variables={"seed": "s"})

        results = await make_player(2, executor).run_multi([scenario, scenario])

        assert results.values() == [{"seed": "s", "n": 1}, {"seed": "s", "n": 1}]
        assert len(executor.calls) == 4

    @pytest.mark.asyncio
    async def test_last_write_wins_across_steps(self):
        executor = MockStepExecutor(values={"step0": {"v": 1, "keep": True}, "step1": {"v": 2}})

        result = await make_player(1, executor).run(make_scenario("s"))

        assert result.values == {"v": 2, "keep": True}

    @pytest.mark.asyncio
    async def test_hook_counts(self, scenarios):
        extension = RecordingExtension()
        player = make_player(2, MockStepExecutor(), extensions=[extension])

        await player.run_multi(scenarios)

        assert extension.count("on_scenario_start") == 5
        assert extension.count("on_scenario_end") == 5
        assert extension.count("on_step_start") == 10
        assert extension.count("on_step_end") == 10

    @pytest.mark.asyncio
    async def test_hook_order_within_a_run(self, scenarios):
        extension = AsyncRecordingExtension()
        player = make_player(3, MockStepExecutor(delay=0.001), extensions=[extension])

        await player.run_multi(scenarios)

        for scenario in scenarios:
            hooks = [(e[1], e[3]) for e in extension.events if e[2] == scenario.name]
            assert hooks == [
                ("on_scenario_start", None),
                ("on_step_start", 0),
                ("on_step_end", 0),
                ("on_step_start", 1),
                ("on_step_end", 1),
                ("on_scenario_end", None),
            ]

    @pytest.mark.asyncio
    async def test_extensions_called_in_registration_order(self):
        log = []
        first = RecordingExtension("first", log=log)
        second = RecordingExtension("second", log=log)
        player = make_player(1, MockStepExecutor(), extensions=[first])
        player.add_extension(second)

        await player.run(make_scenario("s", n_steps=1))

        assert [(e[0], e[1]) for e in log] == [
            ("first", "on_scenario_start"),
            ("second", "on_scenario_start"),
            ("first", "on_step_start"),
            ("second", "on_step_start"),
            ("first", "on_step_end"),
            ("second", "on_step_end"),
            ("first", "on_scenario_end"),
            ("second", "on_scenario_end"),
        ]

    @pytest.mark.asyncio
    async def test_failing_extension_stops_later_extensions(self):
        log = []
        first = RecordingExtension("first", fail_on={"on_scenario_start": None}, log=log)
        second = RecordingExtension("second", log=log)
        player = make_player(1, MockStepExecutor(), extensions=[first, second])

        result = await player.run(make_scenario("s"))

        assert result.failure.kind == OutcomeKind.EXTENSION_ERROR
        assert ("second", "on_scenario_start", "s", None) not in log

    @pytest.mark.asyncio
    async def test_extension_error_only_affects_its_scenario(self, scenarios):
        extension = RecordingExtension(fail_on={"on_step_end": "scenario1"})
        player = make_player(2, MockStepExecutor(), extensions=[extension])

        results = await player.run_multi(scenarios)

        assert [r.is_errored for r in results] == [False, True, False, False, False]
        assert results[1].failure.kind == OutcomeKind.EXTENSION_ERROR

    @pytest.mark.asyncio
    async def test_registration_rejected_while_running(self):
        attempts = []

        class Intruder:
            def __init__(self, player):
                self.player = player

            def on_scenario_start(self, scenario, values):
                try:
                    self.player.add_extension(RecordingExtension())
                except RuntimeError as e:
                    attempts.append(str(e))

        player = make_player(1, MockStepExecutor())
        player.add_extension(Intruder(player))

        result = await player.run(make_scenario("s"))

        assert result.is_completed
        assert len(attempts) == 1
        assert len(player.dispatcher) == 1

    def test_extension_without_hooks_rejected(self, mock_executor):
        player = make_player(1, mock_executor)
        with pytest.raises(TypeError):
            player.add_extension(object())

    @pytest.mark.asyncio
    async def test_slots_released_after_faults(self, scenarios):
        executor = MockStepExecutor(outcomes={"step1": RuntimeError("boom")})
        player = make_player(2, executor)

        results = await player.run_multi(scenarios)

        assert all(r.failure.kind == OutcomeKind.ENGINE_FAULT for r in results)
        assert player.pool.in_use_count == 0
        assert player.pool.free_count == 2

    @pytest.mark.asyncio
    async def test_runner_crash_becomes_fault_result(self, scenarios, mocker):
        player = make_player(2, MockStepExecutor())
        original = player.runner.run

        async def flaky(scenario, slot, dispatcher):
            if scenario.name == "scenario3":
                raise RuntimeError("runner crashed")
            return await original(scenario, slot, dispatcher)

        mocker.patch.object(player.runner, "run", side_effect=flaky)

        results = await player.run_multi(scenarios)

        assert [r.is_errored for r in results] == [False, False, False, True, False]
        assert results[3].failure.kind == OutcomeKind.ENGINE_FAULT
        assert player.states[3] == ScenarioState.ERRORED
        assert player.pool.in_use_count == 0

    @pytest.mark.asyncio
    async def test_states_after_batch(self, scenarios):
        executor = MockStepExecutor(outcomes={("scenario0", "step0"): StepOutcome.assertion_failed("x")})
        player = make_player(2, executor)

        await player.run_multi(scenarios)

        assert player.states == [ScenarioState.ERRORED] + [ScenarioState.COMPLETED] * 4

    @pytest.mark.asyncio
    async def test_rejects_non_scenarios_before_running(self, mock_executor):
        player = make_player(1, mock_executor)

        with pytest.raises(TypeError):
            await player.run_multi([make_scenario("ok"), "not a scenario"])

        assert mock_executor.calls == []

    @pytest.mark.asyncio
    async def test_player_is_reusable(self, scenarios):
        executor = MockStepExecutor()
        player = make_player(2, executor)

        first = await player.run_multi(scenarios[:2])
        second = await player.run_multi(scenarios[2:])

        assert len(first) == 2
        assert len(second) == 3
        assert not player.dispatcher.is_running

    @pytest.mark.asyncio
    async def test_run_single(self, mock_executor):
        result = await make_player(1, mock_executor).run(make_scenario("single"))

        assert result.scenario_name == "single"
        assert result.is_completed


@pytest.mark.unit
class TestParallelRuns:
    """Scenario runs execute in parallel threads, one per pool slot."""

    @pytest.mark.asyncio
    async def test_blocking_executor_runs_in_parallel(self):
        executor = BlockingStepExecutor(seconds=0.3)
        player = Player.create(2, executor)
        batch = [make_scenario("a", n_steps=1), make_scenario("b", n_steps=1)]

        async with player.pool:
            start = time.monotonic()
            results = await player.run_multi(batch)
            elapsed = time.monotonic() - start

        assert results.statuses() == [ResultStatus.COMPLETED] * 2
        assert executor.gauge.max_active == 2
        assert elapsed < 0.55
        assert len(executor.gauge.threads) == 2
        assert threading.current_thread().name not in executor.gauge.threads

    @pytest.mark.asyncio
    async def test_blocking_hook_only_holds_up_its_scenario(self):
        extension = BlockingExtension(seconds=0.2)
        player = Player.create(3, MockStepExecutor(), extensions=[extension])

        async with player.pool:
            results = await player.run_multi([make_scenario(f"s{i}", n_steps=1) for i in range(3)])

        assert results.statuses() == [ResultStatus.COMPLETED] * 3
        assert extension.gauge.max_active == 3

    @pytest.mark.asyncio
    async def test_calling_loop_stays_responsive(self):
        player = Player.create(1, BlockingStepExecutor(seconds=0.2))
        ticks = []

        async def ticker():
            while len(ticks) < 5:
                ticks.append(time.monotonic())
                await asyncio.sleep(0.01)

        async with player.pool:
            await asyncio.gather(ticker(), player.run(make_scenario("blocking", n_steps=1)))

        assert ticks[-1] - ticks[0] < 0.15

    def test_player_reused_across_event_loops(self, scenarios):
        executor = MockStepExecutor(delay=0.01)
        player = Player.create(1, executor)

        try:
            first = asyncio.run(player.run_multi(scenarios[:3]))
            second = asyncio.run(player.run_multi(scenarios[:3]))
        finally:
            asyncio.run(player.pool.close_all())

        assert first.statuses() == [ResultStatus.COMPLETED] * 3
        assert second.statuses() == [ResultStatus.COMPLETED] * 3
        assert len(executor.calls) == 12
        assert executor.max_active == 1
