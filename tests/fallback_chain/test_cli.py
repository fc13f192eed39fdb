"""
Fallback CLI Tests

Covers:
- ``plan``: effective settings after YAML/env/CLI merging
- ``dryrun``: simulated chains through the real orchestrator
- ``stats``: summaries of JSONL attempt logs
- Candidate spec parsing
"""

from __future__ import annotations

import json

import pytest
import typer
from typer.testing import CliRunner

from FallbackChain.cli import CandidateStopError, app, parse_candidate_spec

runner = CliRunner()


class TestParseCandidateSpec:
    """name=behaviour parsing."""

    def test_ok(self):
        candidate = parse_candidate_spec("primary=ok:hello")
        assert candidate.name == "primary"
        assert candidate.run(None) == "hello"

    def test_empty(self):
        assert parse_candidate_spec("cache=empty").run(None) == ""

    def test_fail(self):
        with pytest.raises(RuntimeError, match="boom"):
            parse_candidate_spec("a=fail:boom").run(None)

    def test_stop(self):
        with pytest.raises(CandidateStopError, match="halt"):
            parse_candidate_spec("a=stop:halt").run(None)

    @pytest.mark.parametrize(
        "spec",
        ["noequals", "=ok:x", "a=", "a=teleport:x", "a=slow:soon:x", "a=slow:-5:x"],
    )
    def test_malformed(self, spec):
        with pytest.raises(typer.BadParameter):
            parse_candidate_spec(spec)


class TestPlanCommand:
    def test_table(self):
        result = runner.invoke(app, ["plan"], env={})
        assert result.exit_code == 0
        assert "FALLBACK CHAIN SETTINGS" in result.output
        assert "8000 ms" in result.output

    def test_json_with_override(self):
        result = runner.invoke(app, ["plan", "--format", "json", "--timeout-ms", "250"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["timeout_ms"] == 250
        assert data["accept"] == "any"

    def test_env_layer(self):
        result = runner.invoke(
            app, ["plan", "--format", "json"], env={"FALLBACKCHAIN_ACCEPT": "truthy"}
        )
        assert json.loads(result.output)["accept"] == "truthy"

    def test_custom_config(self, tmp_path):
        path = tmp_path / "chain.yaml"
        path.write_text(
            "timeout_ms: null\nattempt_timeouts_ms: [100, null]\naccept: status\n"
            "accept_status: [200]\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["plan", "--config", str(path)])
        assert result.exit_code == 0
        assert "disabled" in result.output
        assert "attempt 0:" in result.output
        assert "status in [200]" in result.output

    def test_missing_config(self, tmp_path):
        result = runner.invoke(app, ["plan", "--config", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 2
        assert "Error loading settings" in result.output

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "chain.yaml"
        path.write_text("accept: status\n", encoding="utf-8")
        result = runner.invoke(app, ["plan", "--config", str(path)])
        assert result.exit_code == 2

    def test_bad_format(self):
        result = runner.invoke(app, ["plan", "--format", "xml"])
        assert result.exit_code == 2


class TestDryrunCommand:
    def test_falls_back_to_backup(self):
        result = runner.invoke(
            app, ["dryrun", "-c", "primary=fail:boom", "-c", "backup=ok:hello"]
        )
        assert result.exit_code == 0, result.output
        assert "2 candidate(s)" in result.output
        assert "rejected" in result.output
        assert "RuntimeError: boom" in result.output
        assert "Result: 'hello'" in result.output

    def test_timeout(self):
        result = runner.invoke(
            app,
            [
                "dryrun",
                "-c", "slow=slow:2000:late",
                "-c", "fast=ok:quick",
                "--timeout-ms", "20",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "timeout" in result.output
        assert "Result: 'quick'" in result.output

    def test_accept_truthy_skips_empty(self):
        result = runner.invoke(
            app, ["dryrun", "-c", "cache=empty", "-c", "origin=ok:x", "--accept", "truthy"]
        )
        assert result.exit_code == 0, result.output
        assert "unacceptable" in result.output
        assert "Result: 'x'" in result.output

    def test_exhausted_exit_code(self):
        result = runner.invoke(app, ["dryrun", "-c", "a=fail:one", "-c", "b=fail:two"])
        assert result.exit_code == 1
        assert "Exhausted: All 2 fallback candidates failed" in result.output

    def test_stop_is_not_retried(self):
        result = runner.invoke(app, ["dryrun", "-c", "a=stop:halt", "-c", "b=ok:never"])
        assert result.exit_code == 2
        assert "Stopped: CandidateStopError: halt" in result.output
        assert "never" not in result.output

    def test_invalid_candidate(self):
        result = runner.invoke(app, ["dryrun", "-c", "broken"])
        assert result.exit_code == 2

    def test_json_logs(self):
        result = runner.invoke(
            app, ["dryrun", "-c", "a=ok:x", "--json-logs"], env={"FALLBACKCHAIN_LOG_LEVEL": "INFO"}
        )
        assert result.exit_code == 0, result.output
        assert '"level": "INFO"' in result.output


class TestStatsCommand:
    def test_dryrun_telemetry_then_stats(self, tmp_path):
        path = tmp_path / "attempts.jsonl"
        for _ in range(2):
            result = runner.invoke(
                app,
                [
                    "dryrun",
                    "-c", "primary=fail:boom",
                    "-c", "backup=ok:hello",
                    "--telemetry", str(path),
                ],
            )
            assert result.exit_code == 0, result.output

        table = runner.invoke(app, ["stats", str(path)])
        assert table.exit_code == 0
        assert "4 attempt(s), 2 candidate(s)" in table.output
        assert "rejected=2" in table.output

        as_json = runner.invoke(app, ["stats", str(path), "--format", "json"])
        summary = json.loads(as_json.output)
        assert summary["backup"]["success_rate"] == 1.0
        assert summary["primary"]["outcomes"] == {"rejected": 2}

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["stats", str(tmp_path / "missing.jsonl")])
        assert result.exit_code == 2
