import asyncio

import pytest

from storyscope.models import ScrapedItem
from storyscope.models.content import ContentItem
from storyscope.models.database import DatabaseManager, create_task, get_task
from storyscope.services.task_runner import TaskRunner, source_for_task_type
from tests.helpers.llm_fakes import FakeOrchestrator, FakeScraper


@pytest.fixture
def database():
    manager = DatabaseManager("sqlite://")
    yield manager
    manager.close()


def _items():
    return [
        ContentItem(
            video_id=f"vid{index:08d}",
            title=title,
            channel_name="Night Tales",
            view_count="2K views",
        )
        for index, title in enumerate(["Ghost Lights", "Haunted Mill", "Dark Lake"])
    ]


def test_source_for_task_type():
    assert source_for_task_type("youtube_scrape") == "youtube"
    assert source_for_task_type("reddit_scrape") == "reddit"
    assert source_for_task_type("unknown") == "youtube"


def test_run_completes_task_and_stores_results(database):
    session = database.new_session()
    task = create_task(
        session,
        "find ghost stories",
        task_type="reddit_scrape",
        parameters={"options": {"max_results": 2}},
    )
    session.close()

    scrapers = []

    def scraper_factory(source):
        scraper = FakeScraper(_items())
        scrapers.append((source, scraper))
        return scraper

    runner = TaskRunner(
        database.new_session,
        FakeOrchestrator(summary="All about ghosts"),
        scraper_factory=scraper_factory,
        batch_delay=0,
        storyboard_delay=0,
    )

    asyncio.run(runner.run(task.id))

    check = database.new_session()
    stored = get_task(check, task.id)
    assert stored.status == "completed"
    assert stored.completed_at is not None
    assert stored.results_summary == "All about ghosts"
    assert stored.report["summary"]["total_items"] == 2
    assert stored.parameters["search"]["max_results"] == 2
    assert stored.parameters["options"] == {"max_results": 2}
    assert check.query(ScrapedItem).filter_by(task_id=task.id).count() == 2
    check.close()

    source, scraper = scrapers[0]
    assert source == "reddit"
    assert scraper.calls == [("ghost stories", "month", 2)]
    assert scraper.closed is True


def test_run_marks_task_failed_on_pipeline_error(database):
    session = database.new_session()
    task = create_task(session, "find ghosts")
    session.close()

    runner = TaskRunner(
        database.new_session,
        FakeOrchestrator(),
        scraper_factory=lambda source: FakeScraper([], error=RuntimeError("blocked by captcha")),
        batch_delay=0,
        storyboard_delay=0,
    )

    asyncio.run(runner.run(task.id))

    check = database.new_session()
    failed = get_task(check, task.id)
    assert failed.status == "failed"
    assert failed.error_message == "blocked by captcha"
    assert failed.completed_at is not None
    assert failed.report is None
    check.close()


def test_run_marks_task_failed_when_scraper_cannot_be_built(database):
    session = database.new_session()
    task = create_task(session, "find ghosts", task_type="reddit_scrape")
    session.close()

    def broken_factory(source):
        raise ValueError("Reddit API credentials not found")

    runner = TaskRunner(database.new_session, FakeOrchestrator(), scraper_factory=broken_factory)

    asyncio.run(runner.run(task.id))

    check = database.new_session()
    assert get_task(check, task.id).status == "failed"
    check.close()


def test_run_marks_task_failed_when_results_cannot_be_saved(database, monkeypatch):
    session = database.new_session()
    task = create_task(session, "find ghost stories")
    session.close()

    def failing_save(session, task_id, result):
        raise RuntimeError("db write failed")

    monkeypatch.setattr("storyscope.services.task_runner.save_pipeline_result", failing_save)
    runner = TaskRunner(
        database.new_session,
        FakeOrchestrator(),
        scraper_factory=lambda source: FakeScraper(_items()),
        batch_delay=0,
        storyboard_delay=0,
    )

    asyncio.run(runner.run(task.id))

    check = database.new_session()
    failed = get_task(check, task.id)
    assert failed.status == "failed"
    assert failed.error_message == "db write failed"
    assert failed.report is None
    assert "search" not in (failed.parameters or {})
    assert check.query(ScrapedItem).filter_by(task_id=task.id).count() == 0
    check.close()


def test_runner_shares_analysis_cache_between_tasks(database):
    session = database.new_session()
    first = create_task(session, "find ghost stories")
    second = create_task(session, "find ghost stories")
    session.close()

    orchestrator = FakeOrchestrator()
    runner = TaskRunner(
        database.new_session,
        orchestrator,
        scraper_factory=lambda source: FakeScraper(_items()),
        batch_delay=0,
        storyboard_delay=0,
    )

    asyncio.run(runner.run(first.id))
    asyncio.run(runner.run(second.id))

    assert orchestrator.analyzed == ["Ghost Lights", "Haunted Mill", "Dark Lake"]
    check = database.new_session()
    assert get_task(check, second.id).status == "completed"
    check.close()
