"""BDD step definitions for probe features.

Scenario state lives in ProbeScenarioContext; helpers are in
steps_helpers.py.
"""

import pytest
from pytest_bdd import given, parsers, then, when
from tests.features.probes.steps_helpers import (
    ProbeScenarioContext,
    parse_numbers,
    run_async,
)
from tests.fakes import FakeRedisClient, FakeRedisModule

from probekit.agent import Agent
from probekit.core.config import AgentConfig, SamplingPolicy
from probekit.probes.redis import RedisProbe


@pytest.fixture
def ctx() -> ProbeScenarioContext:
    """Fresh scenario context for each test."""
    return ProbeScenarioContext()


# === Background Steps ===
@given("an agent with in-memory sinks")
def step_agent(ctx: ProbeScenarioContext) -> None:
    ctx.agent = Agent(
        AgentConfig(),
        sample_sink=ctx.sample_sink,
        metric_sink=ctx.metric_sink,
        diagnostics=ctx.diagnostics,
    )


@given("a Redis client instrumented by the Redis probe")
def step_instrumented_client(ctx: ProbeScenarioContext) -> None:
    ctx.probe = ctx.agent.register(RedisProbe)
    ctx.client = FakeRedisClient()
    ctx.probe.instrument_client(ctx.client)


@given("the Redis probe attached to a client factory")
def step_attached_module(ctx: ProbeScenarioContext) -> None:
    ctx.probe = ctx.agent.register(RedisProbe)
    ctx.module = FakeRedisModule()
    ctx.agent.attach("redis", ctx.module)


@given(parsers.parse("the sampling rate is {rate:f}"))
def step_sampling_rate(ctx: ProbeScenarioContext, rate: float) -> None:
    ctx.agent.samples.policy = SamplingPolicy(rate=rate)


@given(parsers.parse('a client connected to "{host}" port {port:d}'))
def step_connected_client(ctx: ProbeScenarioContext, host: str, port: int) -> None:
    ctx.client = ctx.module.create_client(host, port)


# === Command Steps ===
@when(parsers.parse('the application issues {n:d} "{command}" commands'))
def when_commands(ctx: ProbeScenarioContext, n: int, command: str) -> None:
    for i in range(n):
        getattr(ctx.client, command)(f"key:{i}")


@when(parsers.parse('the application issues {n:d} "{command}" commands with callbacks'))
def when_callback_commands(ctx: ProbeScenarioContext, n: int, command: str) -> None:
    for i in range(n):
        getattr(ctx.client, command)(f"key:{i}", lambda err, value: None)


@when(parsers.parse('the application issues a "{command}" command for key "{key}"'))
def when_command_for_key(ctx: ProbeScenarioContext, command: str, key: str) -> None:
    try:
        getattr(ctx.client, command)(key)
    except ValueError:
        pass


@then(parsers.parse("{n:d} samples are delivered"))
def then_sample_count(ctx: ProbeScenarioContext, n: int) -> None:
    assert len(ctx.delivered_samples()) == n


@then(parsers.parse('every sample has command "{command}"'))
def then_every_command(ctx: ProbeScenarioContext, command: str) -> None:
    assert all(s.command == command for s in ctx.delivered_samples())


@then("every sample has a non-empty stack trace")
def then_every_stack(ctx: ProbeScenarioContext) -> None:
    assert all(s.stack_trace for s in ctx.delivered_samples())


@then(parsers.parse('the sample error is "{message}"'))
def then_sample_error(ctx: ProbeScenarioContext, message: str) -> None:
    [sample] = ctx.delivered_samples()
    assert sample.error == message


# === Metric Steps ===
@when(parsers.parse("the server reports {key} of {values} across three polls"))
def when_reports_series(ctx: ProbeScenarioContext, key: str, values: str) -> None:
    for value in values.split(","):
        ctx.module.info_payload = {key: value.strip()}
        run_async(ctx.probe.poll())


@when(parsers.parse("the server reports {key} of {value:d}"))
def when_reports_value(ctx: ProbeScenarioContext, key: str, value: int) -> None:
    ctx.module.info_payload = {key: str(value)}
    run_async(ctx.probe.poll())


@when(parsers.parse("clients connect to {n:d} distinct servers"))
def when_many_servers(ctx: ProbeScenarioContext, n: int) -> None:
    for i in range(n):
        ctx.module.create_client("10.0.0.1", 7000 + i)


@then(parsers.parse('the "{name}" metric values are {values}'))
def then_metric_values(ctx: ProbeScenarioContext, name: str, values: str) -> None:
    emitted = [o.value for o in ctx.delivered_observations() if o.name == name]
    assert emitted == parse_numbers(values)


@then(parsers.parse('the "{name}" metric value is {value:d}'))
def then_metric_value(ctx: ProbeScenarioContext, name: str, value: int) -> None:
    emitted = [o.value for o in ctx.delivered_observations() if o.name == name]
    assert emitted == [float(value)]


@then(parsers.parse("{n:d} servers are monitored"))
def then_monitored(ctx: ProbeScenarioContext, n: int) -> None:
    assert len(ctx.probe.resources) == n
