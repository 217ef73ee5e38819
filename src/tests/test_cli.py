import json

from utmtrack.app.cli import main


def test_run_then_report(tmp_path, capsys):
    db_path = tmp_path / "track.duckdb"
    cfg = tmp_path / "tracker.yaml"
    cfg.write_text(
        "run: {run_id: cli_run, start_date: '2026-01-01'}\n"
        f"storage: {{duckdb_path: '{db_path}'}}\n"
        "logging: {level: WARNING}\n"
        "visits:\n"
        "  - at_s: 0\n"
        "    profile: a\n"
        "    url: 'https://example.com/?utm_source=google'\n"
        "    consent: true\n"
    )

    assert main(["run", "--config", str(cfg)]) == 0
    out = capsys.readouterr().out
    assert f"run_id=cli_run duckdb={db_path} events=1" in out

    assert main(["report", "--duckdb", str(db_path), "--run-id", "cli_run"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["totalEvents"] == 1
    assert report["sourceCounts"] == {"google": 1}
