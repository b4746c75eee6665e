# tests/orchestration/test_cli_runner.py
import pytest

from models import Stage
from orchestration import cli_runner
from orchestration.cli_runner import default_idempotency_key, run_article_job
from storage.job_store import FileJobStore


def test_default_key_is_stable():
    first = default_idempotency_key("Pricing", "Q: a\nA: b")
    assert first == default_idempotency_key("Pricing", "Q: a\nA: b")
    assert first.startswith("article-")
    assert first != default_idempotency_key("Pricing", "")


@pytest.mark.asyncio
async def test_run_article_job_publishes_and_persists(scripted_generator, tmp_path):
    generator = scripted_generator()
    state = await run_article_job(
        generator, "Startup onboarding", key="cli-1", store_dir=str(tmp_path), workers=1
    )

    assert state.stage is Stage.PUBLISH
    stored = await FileJobStore(str(tmp_path)).read("cli-1")
    assert stored is not None
    assert stored.markdown == state.markdown


@pytest.mark.asyncio
async def test_rerun_with_same_key_reuses_stored_state(scripted_generator, tmp_path):
    await run_article_job(
        scripted_generator(), "Startup onboarding", key="cli-2", store_dir=str(tmp_path)
    )
    second = scripted_generator()
    state = await run_article_job(
        second, "Startup onboarding", key="cli-2", store_dir=str(tmp_path)
    )

    assert state.stage is Stage.PUBLISH
    assert second.calls == []


def test_run_reports_keyboard_interrupt(monkeypatch):
    monkeypatch.setattr(cli_runner, "setup_logging", lambda: None)

    def interrupted(coro):
        coro.close()
        raise KeyboardInterrupt

    monkeypatch.setattr(cli_runner.asyncio, "run", interrupted)
    assert cli_runner.run("Pricing") == 130
