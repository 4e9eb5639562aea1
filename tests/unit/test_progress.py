"""
Unit tests for progress reporting.
"""

import io

from tenantguard.progress import (
    CallbackProgressRenderer,
    DeployProgress,
    ProgressPublisher,
    ProgressRenderer,
    QuietProgressRenderer,
    ScanProgress,
    TerminalProgressRenderer,
    create_progress_publisher,
)


class TestEvents:
    """Tests for progress events."""

    def test_scan_percent(self):
        assert ScanProgress(total=4, completed=1).percent == 25.0
        assert ScanProgress(total=0, completed=0).percent == 0.0
        assert ScanProgress(total=2, completed=2).is_complete

    def test_deploy_to_dict(self):
        event = DeployProgress(total=3, completed=2, succeeded=1, failed=1, current="CA02")
        assert event.to_dict() == {
            "total": 3,
            "completed": 2,
            "succeeded": 1,
            "exists": 0,
            "failed": 1,
            "current": "CA02",
            "percent": 66.7,
        }


class TestRenderers:
    """Tests for renderers."""

    def test_terminal_non_tty(self):
        output = io.StringIO()
        renderer = TerminalProgressRenderer(output=output, bar_width=10)
        renderer.render(ScanProgress(total=2, completed=1, current="organization"))
        renderer.finish(ScanProgress(total=2, completed=2))

        lines = output.getvalue().splitlines()
        assert lines[0] == "  [█████░░░░░] 1/2 organization"
        assert lines[1] == "✓ Scanned 2/2 sources"

    def test_terminal_deploy_summary(self):
        output = io.StringIO()
        TerminalProgressRenderer(output=output).finish(
            DeployProgress(total=3, completed=3, succeeded=2, exists=0, failed=1)
        )
        assert "Deployed 3/3: 2 succeeded, 0 existed, 1 failed" in output.getvalue()

    def test_callback(self):
        updates, done = [], []
        renderer = CallbackProgressRenderer(on_update=updates.append, on_complete=done.append)
        event = ScanProgress(total=1, completed=1)
        renderer.render(event)
        renderer.finish(event)
        assert updates == [event]
        assert done == [event]

    def test_quiet(self):
        QuietProgressRenderer().render(ScanProgress(total=1, completed=0))


class TestPublisher:
    """Tests for ProgressPublisher."""

    def test_failing_renderer_is_isolated(self):
        class Broken(ProgressRenderer):
            def render(self, event):
                raise RuntimeError("display gone")

            def finish(self, event):
                raise RuntimeError("display gone")

        received = []
        publisher = ProgressPublisher([Broken(), CallbackProgressRenderer(on_update=received.append)])
        event = ScanProgress(total=1, completed=1)
        publisher.publish(event)
        publisher.finish(event)
        assert received == [event]

    def test_add_renderer(self):
        received = []
        publisher = ProgressPublisher()
        publisher.add_renderer(CallbackProgressRenderer(on_update=received.append))
        publisher.publish(ScanProgress(total=1, completed=0))
        assert len(received) == 1

    def test_create_quiet_with_callback(self):
        received = []
        publisher = create_progress_publisher(quiet=True, callback=received.append)
        publisher.publish(ScanProgress(total=1, completed=0))
        assert len(received) == 1

    def test_create_quiet(self):
        publisher = create_progress_publisher(quiet=True)
        publisher.publish(ScanProgress(total=1, completed=0))
