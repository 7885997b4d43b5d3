import pytest

import regen
from fractalgen.batch import BatchError
from fractalgen.config import ACCEPTANCE_BAND


def test_generate_arguments():
    opt = regen.build_parser().parse_args(["generate", "--count", "3", "--preview"])
    assert opt.command == "generate"
    assert opt.count == 3
    assert opt.preview is True
    assert opt.band == list(ACCEPTANCE_BAND)
    assert opt.max_attempts is None


def test_command_is_required():
    with pytest.raises(SystemExit):
        regen.build_parser().parse_args([])


def test_generate_passes_configuration_to_batch(tmp_path, monkeypatch):
    calls = []

    def fake_run_batch(count, config, *, seed, preview):
        calls.append((count, config, seed, preview))
        return []

    monkeypatch.setattr(regen, "run_batch", fake_run_batch)

    code = regen.main([
        "generate", "-c", "4", "--seed", "7", "--band", "0.4", "0.6",
        "--max-attempts", "10", "--output-dir", str(tmp_path),
    ])

    assert code == 0
    count, config, seed, preview = calls[0]
    assert (count, seed, preview) == (4, 7, False)
    assert config.acceptance_band == (0.4, 0.6)
    assert config.max_attempts == 10
    assert config.output_dir == tmp_path


def test_generate_reports_batch_failure(tmp_path, monkeypatch):
    def failing_run_batch(count, config, **kwargs):
        raise BatchError({0: OSError("read-only")}, count)

    monkeypatch.setattr(regen, "run_batch", failing_run_batch)

    assert regen.main(["generate", "--count", "1", "--output-dir", str(tmp_path)]) == 1


def test_generate_rejects_inverted_band():
    with pytest.raises(SystemExit):
        regen.main(["generate", "--count", "1", "--band", "0.8", "0.2"])


def test_upload_without_images_succeeds(tmp_path):
    code = regen.main([
        "upload", "--source-dir", str(tmp_path / "missing"), "--ledger", str(tmp_path / "urls.csv"),
    ])
    assert code == 0
