"""
Scenario walkthrough of the threshold derivation pipeline.

This script exercises:
1. Configuration loading
2. Matrix selection (problem + risk level)
3. Condition tag toggling, including an idempotent repeat
4. Manual override precedence and its wipe on a systemic change
5. Notification deduplication and channel failure

Run with: uv run python run_demo.py
"""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.local.channels import ConsoleChannel, RecordingChannel
from adapters.local.storage import InMemoryKeyValueStore
from vitals.config import get_config
from vitals.domain.models import EffectiveValues, ParameterRange
from vitals.logs import configure_logging
from vitals.services import (
    KeyValueMedicalRecordStore,
    KeyValueOverrideStore,
    KeyValueTagStore,
    NotificationChannel,
    ThresholdService,
)

console = Console()


def create_service(channel: NotificationChannel) -> ThresholdService:
    kv = InMemoryKeyValueStore()
    return ThresholdService(
        records=KeyValueMedicalRecordStore(kv),
        tags=KeyValueTagStore(kv),
        override_store=KeyValueOverrideStore(kv),
        channel=channel,
    )


def show_values(values: EffectiveValues, title: str) -> None:
    table = Table(title=title)
    table.add_column("Parameter", style="cyan")
    table.add_column("Range", style="green")
    table.add_column("Matrix base", style="white")
    for name, current in values.parameter_ranges.items():
        base = values.base_context.matrix_ranges[name]
        table.add_row(
            name,
            f"{current.min} - {current.max} {current.unit}",
            f"{base.min} - {base.max}",
        )
    console.print(table)
    organs = ", ".join(f"{organ}={level.value}" for organ, level in values.organ_levels.items())
    console.print(f"Organs: {organs}  ·  source: {values.data_source}", style="yellow")


def check_configuration() -> bool:
    console.print(Panel("🔧 Configuration", style="blue"))
    config = get_config()
    console.print(f"Environment: {config.environment}")
    console.print(f"Cache TTL: {config.cache.ttl_ms} ms")
    console.print(f"Dedup window: {config.notifier.dedup_window_ms} ms")
    console.print(f"Channel: {config.channel.url} (test mode: {config.channel.test_mode})")
    return True


def check_sepsis_scenario() -> bool:
    console.print(Panel("🦠 Sepsis, high risk, sepsis tag", style="blue"))
    service = create_service(ConsoleChannel(console))

    service.set_problem_and_risk("1", "sepsis", "high")
    result = service.toggle_condition_tag("1", "sepsis", True)
    assert result.effective_values is not None
    show_values(result.effective_values, "Tag-adjusted thresholds")

    repeat = service.toggle_condition_tag("1", "sepsis", True)
    console.print(f"Repeated toggle changed state: {repeat.changed}", style="yellow")

    hr = result.effective_values.parameter_ranges["HR"]
    return (hr.min, hr.max) == (70, 140) and not repeat.changed


def check_override_lifecycle() -> bool:
    console.print(Panel("✋ Manual override lifecycle", style="blue"))
    channel = RecordingChannel()
    service = create_service(channel)

    service.set_problem_and_risk("2", "sepsis", "high")
    service.toggle_condition_tag("2", "sepsis", True)
    service.set_manual_override("2", "HR", ParameterRange(min=100, max=110, unit="bpm"), source="nurse")
    service.set_organ_override("2", "circulatory", "mid", source="nurse")
    show_values(service.get_effective_values("2"), "With override")

    service.set_problem_and_risk("2", "sepsis", "mid")
    values = service.get_effective_values("2")
    show_values(values, "After risk change")
    console.print(f"Messages recorded: {len(channel.sent)}", style="yellow")
    return not values.overrides and not values.organ_overrides


def check_channel_failure() -> bool:
    console.print(Panel("🛡️ Channel unavailable", style="blue"))
    channel = RecordingChannel()
    channel.available = False
    service = create_service(channel)

    result = service.toggle_condition_tag("3", "pneumonia", True)
    console.print(
        f"Tag committed: {result.changed}, notified: {result.notified}",
        style="green" if result.changed else "red",
    )
    return result.changed and not result.notified


def run_all_checks() -> None:
    console.print(Panel("🏥 Vital threshold pipeline - scenario checks", style="bold blue"))

    checks = [
        ("Configuration", check_configuration),
        ("Sepsis scenario", check_sepsis_scenario),
        ("Override lifecycle", check_override_lifecycle),
        ("Channel failure", check_channel_failure),
    ]

    results = []
    for name, check in checks:
        console.print(f"\n{'=' * 60}")
        try:
            results.append((name, check()))
        except Exception as e:
            console.print(f"❌ {name} failed with exception: {e}", style="red")
            results.append((name, False))

    console.print(f"\n{'=' * 60}")
    summary_table = Table(title="Scenario Results")
    summary_table.add_column("Scenario", style="cyan")
    summary_table.add_column("Result", style="white")

    passed = 0
    for name, ok in results:
        summary_table.add_row(name, "✅ PASSED" if ok else "❌ FAILED")
        passed += int(ok)

    console.print(summary_table)
    console.print(f"\n🎯 Results: {passed}/{len(results)} scenarios passed")


if __name__ == "__main__":
    configure_logging()
    try:
        run_all_checks()
    except KeyboardInterrupt:
        console.print("\n👋 Stopped by user", style="yellow")
