import asyncio

from marginalia.editor.positions import LayoutMetrics, MonospaceMeasurer, PositionTracker, TextMeasurer

METRICS = LayoutMetrics(content_width=100, line_height=20, padding_top=10, char_width=10)


def test_monospace_measurer_wraps_lines() -> None:
    measurer = MonospaceMeasurer()

    assert measurer.measure("short", METRICS) == 20
    assert measurer.measure("x" * 25, METRICS) == 60
    assert measurer.measure("one\ntwo", METRICS) == 40
    assert measurer.measure("", METRICS) == 20


def test_recompute_accumulates_heights_and_blank_lines() -> None:
    tracker = PositionTracker()

    positions = tracker.recompute("short\n\n" + "x" * 25 + "\n\n\n\nlast", METRICS)

    # 10 top padding; each paragraph adds its height plus two lines
    assert positions == {0: 10, 1: 70, 2: 170}


def test_positions_are_keyed_by_paragraph_index() -> None:
    tracker = PositionTracker()

    positions = tracker.recompute("\n\n\n\nfirst\n\n  \n\nsecond", METRICS)

    assert sorted(positions) == [0, 1]
    assert all(y >= 0 for y in positions.values())


def test_recompute_is_deterministic() -> None:
    tracker = PositionTracker()
    doc = "alpha beta gamma delta\n\nepsilon"

    assert tracker.recompute(doc, METRICS) == tracker.recompute(doc, METRICS)


def test_schedule_without_loop_computes_immediately() -> None:
    tracker = PositionTracker()

    tracker.schedule("a\n\nb", METRICS)

    assert tracker.positions == {0: 10, 1: 70}


class CountingMeasurer(TextMeasurer):
    def __init__(self) -> None:
        self.calls = 0

    def measure(self, text, metrics):
        self.calls += 1
        return metrics.line_height


def test_schedule_defers_and_keeps_only_latest() -> None:
    measurer = CountingMeasurer()
    tracker = PositionTracker(measurer)

    async def scenario():
        tracker.schedule("a", METRICS)
        tracker.schedule("a\n\nb", METRICS)
        assert tracker.positions == {}
        await tracker.wait()

    asyncio.run(scenario())

    assert tracker.positions == {0: 10, 1: 70}
    assert measurer.calls == 2
