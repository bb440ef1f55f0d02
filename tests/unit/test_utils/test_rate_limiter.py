"""
Unit tests for the per-host politeness tracker.
"""
import pytest

from sourcecrawler.utils.rate_limiter import PolitenessTracker


class TestPolitenessTracker:
    """Tests for PolitenessTracker."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_first_request_does_not_wait(self, fake_clock):
        tracker = PolitenessTracker(1.0, clock=fake_clock, sleep=fake_clock.sleep)

        slept = await tracker.wait("blog.example.com")

        assert slept == 0.0
        assert fake_clock.sleeps == []
        assert tracker.last_request_time("blog.example.com") == fake_clock.now

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_consecutive_requests_are_spaced(self, fake_clock):
        tracker = PolitenessTracker(1.0, clock=fake_clock, sleep=fake_clock.sleep)

        await tracker.wait("blog.example.com")
        fake_clock.now += 0.25
        slept = await tracker.wait("blog.example.com")

        assert slept == pytest.approx(0.75)
        assert fake_clock.sleeps == [pytest.approx(0.75)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_crawl_delay_raises_the_gap(self, fake_clock):
        tracker = PolitenessTracker(1.0, clock=fake_clock, sleep=fake_clock.sleep)

        await tracker.wait("blog.example.com", crawl_delay_seconds=3)
        await tracker.wait("blog.example.com", crawl_delay_seconds=3)

        assert fake_clock.sleeps == [pytest.approx(3.0)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_crawl_delay_below_default_is_ignored(self, fake_clock):
        tracker = PolitenessTracker(2.0, clock=fake_clock, sleep=fake_clock.sleep)

        assert tracker.required_gap(0.5) == 2.0
        assert tracker.required_gap(None) == 2.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_hosts_are_tracked_independently(self, fake_clock):
        tracker = PolitenessTracker(1.0, clock=fake_clock, sleep=fake_clock.sleep)

        await tracker.wait("a.example.com")
        await tracker.wait("b.example.com")

        assert fake_clock.sleeps == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_elapsed_gap_means_no_wait(self, fake_clock):
        tracker = PolitenessTracker(1.0, clock=fake_clock, sleep=fake_clock.sleep)

        await tracker.wait("blog.example.com")
        fake_clock.now += 5
        slept = await tracker.wait("blog.example.com")

        assert slept == 0.0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_recorded_request_delays_next_wait(self, fake_clock):
        tracker = PolitenessTracker(1.0, clock=fake_clock, sleep=fake_clock.sleep)

        tracker.record("blog.example.com")
        slept = await tracker.wait("blog.example.com")

        assert slept == pytest.approx(1.0)
        assert tracker.last_request_time("blog.example.com") == pytest.approx(1001.0)
