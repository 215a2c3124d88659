"""Tests for the share-up command line."""
import logging
import os

import pytest
from rich.logging import RichHandler

import asset_uploader.orchestrator as orchestrator_module
from asset_uploader import cli
from asset_uploader.cli_progress import ShareProgressDisplay
from asset_uploader.errors import TransientNetworkError, UploadCancelled
from asset_uploader.models import UploadConfig
from asset_uploader.orchestrator import ShareResult


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    root.setLevel(level)
    logging.disable(logging.NOTSET)


def unset_env(monkeypatch, *names):
    """Remove variables so that teardown also drops values written by the CLI."""
    for name in names:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    unset_env(monkeypatch, "LOG_LEVEL", "SHARE_SITE_URL", "SHARE_API_KEY", "SHARE_MAX_ASSET_CONCURRENCY")
    return tmp_path


class TestEnvFile:
    def test_loads_values(self, tmp_path, monkeypatch):
        unset_env(monkeypatch, "SHARE_TEST_A", "SHARE_TEST_B")
        monkeypatch.setenv("SHARE_TEST_C", "kept")
        env = tmp_path / ".env"
        env.write_text(
            "# comment\n"
            "SHARE_TEST_A='quoted value'\n"
            "export SHARE_TEST_B=plain\n"
            "SHARE_TEST_C=replaced\n"
            "not a pair\n",
            encoding="utf-8",
        )

        applied = cli._load_env_file(env)

        assert applied == {"SHARE_TEST_A": "quoted value", "SHARE_TEST_B": "plain"}
        assert os.environ["SHARE_TEST_A"] == "quoted value"
        assert os.environ["SHARE_TEST_B"] == "plain"
        assert os.environ["SHARE_TEST_C"] == "kept"

    def test_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SHARE_TEST_C", "kept")
        env = tmp_path / ".env"
        env.write_text('SHARE_TEST_C="replaced"\n', encoding="utf-8")

        cli._load_env_file(env, override=True)

        assert os.environ["SHARE_TEST_C"] == "replaced"

    def test_missing_file(self, tmp_path):
        with pytest.raises(cli.CLIError, match="not found"):
            cli._load_env_file(tmp_path / "missing.env")

    def test_directory_is_not_an_env_file(self, tmp_path):
        with pytest.raises(cli.CLIError, match="is not a file"):
            cli._load_env_file(tmp_path)

    def test_default_env_file(self, tmp_path):
        assert cli._resolve_default_env_file(tmp_path) is None
        (tmp_path / ".env").write_text("A=1\n", encoding="utf-8")
        assert cli._resolve_default_env_file(tmp_path) == tmp_path / ".env"


@pytest.mark.parametrize(
    "line, expected",
    [
        ("KEY=value", ("KEY", "value")),
        ("  export KEY = \"spaced value\" ", ("KEY", "spaced value")),
        ("KEY='a=b'", ("KEY", "a=b")),
        ("KEY=", ("KEY", "")),
        ("# KEY=value", None),
        ("", None),
        ("no separator", None),
        ("=value", None),
    ],
)
def test_parse_env_line(line, expected):
    assert cli._parse_env_line(line) == expected


class TestCollectFiles:
    def test_expands_directories(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "b.png").write_bytes(b"b")
        (tmp_path / "a.png").write_bytes(b"a")
        single = tmp_path / "single.txt"
        single.write_bytes(b"s")

        files = cli._collect_files([tmp_path / "sub", single])

        assert files == [(tmp_path / "sub" / "b.png", "b.png"), (single, "single.txt")]

    def test_same_name_in_subfolders_stays_distinct(self, tmp_path):
        for folder, payload in (("a", b"1234"), ("b", b"12345678")):
            (tmp_path / "imgs" / folder).mkdir(parents=True)
            (tmp_path / "imgs" / folder / "img.png").write_bytes(payload)

        files = cli._collect_files([tmp_path / "imgs"])

        assert [name for _, name in files] == ["a/img.png", "b/img.png"]

    def test_clashing_names_rejected(self, tmp_path):
        for folder in ("a", "b"):
            (tmp_path / folder).mkdir()
            (tmp_path / folder / "img.png").write_bytes(b"x")

        with pytest.raises(cli.CLIError, match="img.png"):
            cli._collect_files([tmp_path / "a" / "img.png", tmp_path / "b" / "img.png"])

    def test_missing_path(self, tmp_path):
        with pytest.raises(cli.CLIError, match="does not exist"):
            cli._collect_files([tmp_path / "nope.png"])


class TestSetupLogging:
    def test_silent_by_default(self, restore_logging, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert cli._setup_logging(debug=False, silent=False, log_level=None) == "silent"
        assert logging.getLogger().handlers == []

    def test_debug(self, restore_logging, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert cli._setup_logging(debug=True, silent=False, log_level=None) == "DEBUG"
        assert logging.getLogger().level == logging.DEBUG

    def test_env_level(self, restore_logging, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        assert cli._setup_logging(debug=False, silent=False, log_level=None) == "WARNING"

    def test_silent_wins(self, restore_logging, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert cli._setup_logging(debug=True, silent=True, log_level=None) == "silent"


class TestRunCli:
    def test_without_doc_id_prints_help(self, clean_env, restore_logging, capsys):
        assert cli.run_cli([]) == 0
        assert "share-up" in capsys.readouterr().out

    def test_missing_api_key(self, clean_env, restore_logging, capsys):
        code = cli.run_cli(["-d", "doc-1", "--site", "https://share.example.com"])

        assert code == 1
        assert "API key missing" in capsys.readouterr().err

    def test_bad_site_url(self, clean_env, restore_logging, capsys):
        code = cli.run_cli(["-d", "doc-1", "--site", "ftp://share.example.com", "--api-key", "k"])

        assert code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_missing_asset(self, clean_env, restore_logging):
        code = cli.run_cli(
            ["-d", "doc-1", "--site", "https://share.example.com", "--api-key", "k", "missing.png"]
        )
        assert code == 1

    def test_site_from_env_file(self, clean_env, restore_logging, monkeypatch):
        (clean_env / ".env").write_text(
            "SHARE_SITE_URL=https://share.example.com\nSHARE_API_KEY=secret\n", encoding="utf-8"
        )
        seen = {}

        async def fake_run_share(**kwargs):
            seen.update(kwargs)
            return 0

        monkeypatch.setattr(cli, "_run_share", fake_run_share)

        assert cli.run_cli(["-d", "doc-1", "--max-asset-concurrency", "2"]) == 0
        assert seen["site_url"] == "https://share.example.com"
        assert seen["api_key"] == "secret"
        assert seen["title"] == "doc-1"
        assert seen["config"].max_asset_concurrency == 2
        assert seen["files"] == []


class FakeOrchestrator:
    outcome = None
    calls = []

    def __init__(self, site_url, api_key, config=None):
        self.listeners = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None

    def on(self, event_name, callback):
        self.listeners.append(event_name)

    async def share_doc(self, doc_id, metadata, assets, progress=None, token=None):
        FakeOrchestrator.calls.append(("doc", doc_id, metadata, assets))
        return self._finish(assets)

    async def share_notebook(self, notebook_id, metadata, assets, progress=None, token=None):
        FakeOrchestrator.calls.append(("notebook", notebook_id, metadata, assets))
        return self._finish(assets)

    def _finish(self, assets):
        if isinstance(FakeOrchestrator.outcome, BaseException):
            raise FakeOrchestrator.outcome
        return ShareResult(upload_id="up-1", total_assets=len(assets), total_bytes=0, elapsed=0.1)


@pytest.fixture
def fake_orchestrator(monkeypatch):
    FakeOrchestrator.outcome = None
    FakeOrchestrator.calls = []
    monkeypatch.setattr(orchestrator_module, "ShareUploadOrchestrator", FakeOrchestrator)
    return FakeOrchestrator


async def run_share(files, notebook=False):
    return await cli._run_share(
        site_url="https://share.example.com",
        api_key="k",
        doc_id="doc-1",
        title="Title",
        markdown="# Hi",
        files=files,
        notebook=notebook,
        config=UploadConfig(),
    )


class TestRunShare:
    @pytest.mark.asyncio
    async def test_doc_share(self, fake_orchestrator, tmp_path, capsys):
        image = tmp_path / "a.png"
        image.write_bytes(b"png")

        assert await run_share([(image, "a.png")]) == 0

        kind, doc_id, metadata, assets = fake_orchestrator.calls[0]
        assert kind == "doc"
        assert metadata["title"] == "Title"
        assert metadata["markdown"] == "# Hi"
        assert assets[0].path == "assets/a.png"
        assert assets[0].doc_id == "doc-1"
        assert "upload up-1" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_notebook_assets_have_no_owner(self, fake_orchestrator, tmp_path):
        image = tmp_path / "a.png"
        image.write_bytes(b"png")

        assert await run_share([(image, "a.png")], notebook=True) == 0

        kind, _, _, assets = fake_orchestrator.calls[0]
        assert kind == "notebook"
        assert assets[0].doc_id is None

    @pytest.mark.asyncio
    async def test_cancelled_exit_code(self, fake_orchestrator):
        fake_orchestrator.outcome = UploadCancelled("Interrupted by user")
        assert await run_share([]) == 130

    @pytest.mark.asyncio
    async def test_failure_exit_code(self, fake_orchestrator, capsys):
        fake_orchestrator.outcome = TransientNetworkError("server down")
        assert await run_share([]) == 1
        assert "server down" in capsys.readouterr().err


def test_progress_display_close_is_idempotent():
    display = ShareProgressDisplay("Sharing")
    display.update(text="Uploading content", percent=40.0, detail="1/2 assets")
    display.update(percent=None, detail="still going")
    display.close()
    display.close()
    display.update(percent=90.0)


def test_nested_assets_with_same_name_are_all_shared(clean_env, restore_logging, fake_orchestrator):
    for folder, payload in (("a", b"1234"), ("b", b"12345678")):
        (clean_env / "imgs" / folder).mkdir(parents=True)
        (clean_env / "imgs" / folder / "img.png").write_bytes(payload)

    code = cli.run_cli(
        ["-d", "doc-1", "--site", "https://share.example.com", "--api-key", "k", str(clean_env / "imgs")]
    )

    assert code == 0
    _, _, _, assets = fake_orchestrator.calls[0]
    assert [(a.path, a.size_bytes) for a in assets] == [("assets/a/img.png", 4), ("assets/b/img.png", 8)]
