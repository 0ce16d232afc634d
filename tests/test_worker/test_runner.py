"""
Tests for the daemon entry point.
"""

import asyncio
import os
import signal

import httpx
import pytest

from conftest import FakeBank, make_transaction, mock_http, open_db, table_rows, transaction_json
from investec_buckets.config import load_settings
from investec_buckets.pipeline.sync import SyncStats
from investec_buckets.worker import runner
from investec_buckets.worker.scheduler import SyncScheduler


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    monkeypatch.setattr(runner, "setup_logging", lambda **kwargs: None)


def ollama_and_bank(bank: FakeBank, reply: str = "Food"):
    """Routes localhost to a fake Ollama server and everything else to the bank."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "localhost":
            if request.url.path == "/api/tags":
                return httpx.Response(200, json={"models": [{"name": "llama3"}]})
            return httpx.Response(200, json={"message": {"role": "assistant", "content": reply}})
        return bank.handler(request)

    return handler


@pytest.fixture
def daemon_env(base_env, monkeypatch, fake_bank, db_url):
    """Settings for an Ollama-only daemon on a temp SQLite file, HTTP served by fakes."""
    base_env.setenv("OLLAMA_MODEL", "llama3")
    base_env.setenv("DATABASE_URL", db_url)
    fake_bank.transactions["acc-1"] = [transaction_json(make_transaction(uuid="a"))]
    monkeypatch.setattr(
        runner, "build_http_client", lambda *args, **kwargs: mock_http(ollama_and_bank(fake_bank)),
    )
    return load_settings()


def stored_rows(url: str):
    async def scenario():
        async with open_db(url) as db:
            return await table_rows(db)

    return asyncio.run(scenario())


class TestMain:

    def test_config_error_exits_before_any_work(self, base_env, capsys, monkeypatch):
        base_env.delenv("INVESTEC_CLIENT_SECRET")
        base_env.setenv("OLLAMA_MODEL", "llama3")
        called = []
        monkeypatch.setattr(runner, "run_daemon", lambda *a, **kw: called.append(a))

        assert runner.main([]) == runner.EXIT_CONFIG_ERROR
        err = capsys.readouterr().err
        assert "INVESTEC_CLIENT_SECRET" in err
        assert len(err.strip().splitlines()) == 1
        assert called == []

    def test_no_llm_is_config_error(self, base_env, capsys):
        assert runner.main(["run"]) == runner.EXIT_CONFIG_ERROR
        assert capsys.readouterr().err.startswith("configuration error:")

    def test_run_once_passes_flag(self, base_env, monkeypatch):
        base_env.setenv("OLLAMA_MODEL", "llama3")
        seen = {}

        async def fake_run_daemon(settings, once=False):
            seen["once"] = once
            seen["model"] = settings.OLLAMA_MODEL
            return runner.EXIT_OK

        monkeypatch.setattr(runner, "run_daemon", fake_run_daemon)
        assert runner.main(["run", "--once"]) == runner.EXIT_OK
        assert seen == {"once": True, "model": "llama3"}

    def test_accounts_command(self, base_env, monkeypatch):
        base_env.setenv("OLLAMA_MODEL", "llama3")

        async def fake_list_accounts(settings):
            return runner.EXIT_RUNTIME_FAILURE

        monkeypatch.setattr(runner, "list_accounts", fake_list_accounts)
        assert runner.main(["accounts"]) == runner.EXIT_RUNTIME_FAILURE

    def test_unknown_command_rejected(self, base_env):
        with pytest.raises(SystemExit):
            runner.main(["frobnicate"])


class TestRunDaemon:

    def test_once_syncs_at_startup_and_exits(self, daemon_env, monkeypatch, db_url):
        armed = []
        monkeypatch.setattr(runner, "SyncScheduler", lambda *args: armed.append(args))

        assert asyncio.run(runner.run_daemon(daemon_env, once=True)) == runner.EXIT_OK
        txs, anns = stored_rows(db_url)
        assert [row["uuid"] for row in txs] == ["a"]
        assert anns[0]["bucket"] == "Food"
        assert armed == []

    def test_database_init_failure_exits_runtime_failure(self, daemon_env, tmp_path, fake_bank):
        settings = daemon_env.model_copy(
            update={"DATABASE_URL": f"sqlite:///{tmp_path / 'missing-dir' / 'buckets.db'}"},
        )
        assert asyncio.run(runner.run_daemon(settings)) == runner.EXIT_RUNTIME_FAILURE
        assert not any(r.url.path.endswith("/transactions") for r in fake_bank.requests)

    def test_sigint_lets_inflight_tick_finish(self, daemon_env, monkeypatch, fake_bank, db_url):
        schedulers = []

        class InterruptedScheduler(SyncScheduler):
            """Fires one tick as soon as it is armed, then the process gets SIGINT."""

            def __init__(self, *args):
                super().__init__(*args)
                self.ticks: list[SyncStats] = []
                self.transaction_fetches_at_start = None
                schedulers.append(self)

            def start(self):
                self.transaction_fetches_at_start = sum(
                    1 for r in fake_bank.requests if r.url.path.endswith("/transactions")
                )
                super().start()
                loop = asyncio.get_running_loop()
                loop.create_task(self._fire())
                loop.call_soon(os.kill, os.getpid(), signal.SIGINT)

            async def tick(self):
                stats = await super().tick()
                self.ticks.append(stats)
                return stats

        monkeypatch.setattr(runner, "SyncScheduler", InterruptedScheduler)

        assert asyncio.run(runner.run_daemon(daemon_env)) == runner.EXIT_OK

        (scheduler,) = schedulers
        assert scheduler.transaction_fetches_at_start == 1
        assert scheduler.ticks == [SyncStats(accounts=1, total=1, new=0, skipped=1, failed=0)]
        assert not scheduler.running
        txs, anns = stored_rows(db_url)
        assert len(txs) == 1
        assert len(anns) == 1


class TestListAccounts:

    def test_prints_balances(self, daemon_env, fake_bank, capsys):
        fake_bank.accounts = [{"accountId": "acc-1", "accountNumber": "10011234567", "accountName": "Mr J Smith"}]

        assert asyncio.run(runner.list_accounts(daemon_env)) == runner.EXIT_OK
        out = capsys.readouterr().out
        assert "10011234567  Mr J Smith" in out
        assert "current=1000.5 available=900.25 ZAR" in out
        assert any(r.url.path == "/za/pb/v1/accounts/acc-1/balance" for r in fake_bank.requests)

    def test_bank_error_exits_runtime_failure(self, daemon_env, fake_bank, capsys):
        fake_bank.token_status = 401

        assert asyncio.run(runner.list_accounts(daemon_env)) == runner.EXIT_RUNTIME_FAILURE
        assert "invalid_client" in capsys.readouterr().err
