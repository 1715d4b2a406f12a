"""
End-to-end tests for the configuration pass against a temporary install tree.
"""

import os
import stat
from types import SimpleNamespace

import pytest

from snakk_installer import memory_probe
from snakk_installer.generate_config import generate_configuration
from snakk_installer.models import AllocationSource, WriteDecision


CUSTOM_CADDYFILE = "".join(f"site{i}.acme.org {{ reverse_proxy 10.0.0.{i}:3000 }}\n" for i in range(10))


class TestGenerateConfiguration:
    def test_fresh_run_writes_three_artifacts(self, config):
        result = generate_configuration(config, total_mb=2048)

        assert result.ok
        assert [r.name for r in result.reports] == [
            "env_fragment",
            "postgresql_conf",
            "compose_override",
        ]
        assert all(r.decision is WriteDecision.WRITE for r in result.reports)
        assert config.env_path.exists()
        assert config.postgresql_conf_path.exists()
        assert config.compose_override_path.exists()

    def test_env_fragment_contents_and_mode(self, config):
        result = generate_configuration(config, total_mb=2048)
        content = config.env_path.read_text()
        credential = result.report_for("env_fragment").details["credential"]

        assert f"POSTGRES_PASSWORD={credential}\n" in content
        assert "SNAKK_PORT=17000\n" in content
        assert len(credential) >= 32
        assert credential.isalnum()
        assert stat.S_IMODE(os.stat(config.env_path).st_mode) == 0o600

    def test_postgresql_conf_matches_plan(self, config):
        generate_configuration(config, total_mb=2048)
        content = config.postgresql_conf_path.read_text()

        assert "# Generated by install script for 640MB container" in content
        assert "shared_buffers = 160MB\n" in content
        assert "effective_cache_size = 480MB\n" in content
        assert "maintenance_work_mem = 64MB\n" in content
        assert "work_mem = 4MB\n" in content
        assert "wal_buffers = 8MB\n" in content
        assert "random_page_cost = 1.1\n" in content
        assert "effective_io_concurrency = 200\n" in content
        assert "checkpoint_completion_target = 0.9\n" in content

    def test_compose_override_limits(self, config):
        generate_configuration(config, total_mb=16384)
        content = config.compose_override_path.read_text()

        assert "# Based on 16384MB total system RAM" in content
        assert "  postgres:\n    deploy:\n      resources:\n        limits:\n          memory: 4096m\n" in content
        assert "  snakk:\n    deploy:\n      resources:\n        limits:\n          memory: 4096m\n" in content

    def test_override_flows_into_artifacts(self, config):
        result = generate_configuration(config, total_mb=2048, override="2000")

        assert result.plan.source is AllocationSource.CUSTOM_OVERRIDE
        assert (result.plan.db_mem_mb, result.plan.app_mem_mb) == (800, 1200)
        assert "memory: 800m" in config.compose_override_path.read_text()
        assert "memory: 1200m" in config.compose_override_path.read_text()

    def test_invalid_override_is_not_fatal(self, config):
        result = generate_configuration(config, total_mb=2048, override="abc")

        assert result.ok
        assert result.plan.source is AllocationSource.FALLBACK
        assert result.plan.db_mem_mb == 640


class TestIdempotentRerun:
    def test_second_run_keeps_credential_and_reproduces_fragments(self, config):
        first = generate_configuration(config, total_mb=4096)
        env_before = config.env_path.read_bytes()
        conf_before = config.postgresql_conf_path.read_bytes()
        override_before = config.compose_override_path.read_bytes()

        second = generate_configuration(config, total_mb=4096)

        env_report = second.report_for("env_fragment")
        assert env_report.decision is WriteDecision.SKIP_EXISTING
        assert (
            env_report.details["credential"]
            == first.report_for("env_fragment").details["credential"]
        )
        assert config.env_path.read_bytes() == env_before
        assert config.postgresql_conf_path.read_bytes() == conf_before
        assert config.compose_override_path.read_bytes() == override_before

    def test_existing_env_without_password_reports_placeholder(self, config):
        config.docker_dir.mkdir(parents=True)
        config.env_path.write_text("SNAKK_PORT=17000\n")

        result = generate_configuration(config, total_mb=4096)

        report = result.report_for("env_fragment")
        assert report.decision is WriteDecision.SKIP_EXISTING
        assert report.details["credential"] == "(existing)"
        assert config.env_path.read_text() == "SNAKK_PORT=17000\n"


class TestReverseProxy:
    def test_empty_domain_skips_caddy(self, config, proxy_service):
        result = generate_configuration(config, total_mb=2048, domain="", proxy_service=proxy_service)

        assert result.report_for("caddyfile") is None
        assert [s.name for s in result.skipped] == ["caddyfile"]
        assert "No domain provided" in result.skipped[0].reason
        assert not config.caddyfile_path.exists()
        assert not config.caddyfile_path.parent.exists()
        assert proxy_service.restarts == 0

    def test_missing_caddy_skips_proxy(self, config, make_proxy_service):
        service = make_proxy_service(installed=False)
        result = generate_configuration(
            config, total_mb=2048, domain="forum.acme.org", proxy_service=service
        )

        assert result.ok
        assert "Caddy not installed" in result.skipped[0].reason
        assert not config.caddyfile_path.exists()

    def test_writes_caddyfile_and_runs_follow_up(self, config, proxy_service):
        result = generate_configuration(
            config, total_mb=2048, domain="forum.acme.org", proxy_service=proxy_service
        )

        report = result.report_for("caddyfile")
        assert report.decision is WriteDecision.WRITE
        content = config.caddyfile_path.read_text()
        assert "forum.acme.org {\n    reverse_proxy localhost:17000\n" in content
        assert "X-Content-Type-Options nosniff" in content
        assert "X-Frame-Options SAMEORIGIN" in content
        assert "Referrer-Policy strict-origin-when-cross-origin" in content
        assert "-Server" in content
        assert f"output file {config.caddy_log_dir / 'snakk.log'}" in content
        assert "format json" in content
        assert proxy_service.log_dirs == [config.caddy_log_dir]
        assert proxy_service.restarts == 1

    def test_restart_failure_is_reported_not_fatal(self, config, make_proxy_service):
        service = make_proxy_service(restart_ok=False)
        result = generate_configuration(
            config, total_mb=2048, domain="forum.acme.org", proxy_service=service
        )

        assert result.ok
        assert result.report_for("caddyfile").details["follow_up"] == "restart failed"

    def test_customized_caddyfile_is_preserved(self, config, proxy_service):
        config.caddyfile_path.parent.mkdir(parents=True)
        config.caddyfile_path.write_text(CUSTOM_CADDYFILE)

        result = generate_configuration(
            config, total_mb=2048, domain="forum.acme.org", proxy_service=proxy_service
        )

        report = result.report_for("caddyfile")
        assert report.decision is WriteDecision.SKIP_CUSTOMIZED
        assert "customized" in report.reason
        assert report.details["manual_fragment"] == (
            "forum.acme.org {\n    reverse_proxy localhost:17000\n}\n"
        )
        assert config.caddyfile_path.read_text() == CUSTOM_CADDYFILE
        assert proxy_service.restarts == 0

    def test_stock_caddyfile_is_replaced(self, config, proxy_service):
        config.caddyfile_path.parent.mkdir(parents=True)
        config.caddyfile_path.write_text(
            ":80 {\n\troot * /usr/share/caddy\n\tfile_server\n}\n"
            "# Welcome to Caddy\n#\n#\n#\n#\n#\n"
        )

        result = generate_configuration(
            config, total_mb=2048, domain="forum.acme.org", proxy_service=proxy_service
        )

        assert result.report_for("caddyfile").decision is WriteDecision.WRITE
        assert "forum.acme.org {" in config.caddyfile_path.read_text()

    def test_generated_caddyfile_is_rewritten_on_rerun(self, config, proxy_service):
        generate_configuration(config, total_mb=2048, domain="forum.acme.org", proxy_service=proxy_service)
        result = generate_configuration(
            config, total_mb=2048, domain="forum.acme.org", proxy_service=proxy_service
        )

        assert result.report_for("caddyfile").decision is WriteDecision.WRITE

    @pytest.mark.parametrize(
        "domain", ["forum.acme.org {\n}", "a.org b.org", "evil.org\nimport x", "{x}"]
    )
    def test_unsafe_domain_skips_caddy(self, config, proxy_service, domain):
        result = generate_configuration(
            config, total_mb=2048, domain=domain, proxy_service=proxy_service
        )

        assert result.ok
        assert result.report_for("caddyfile") is None
        assert "whitespace or braces" in result.skipped[0].reason
        assert not config.caddyfile_path.exists()
        assert proxy_service.restarts == 0

    def test_without_proxy_service_follow_up_is_skipped(self, config):
        result = generate_configuration(config, total_mb=2048, domain="forum.acme.org")

        report = result.report_for("caddyfile")
        assert report.decision is WriteDecision.WRITE
        assert report.details["follow_up"].startswith("skipped")


class TestFatalErrors:
    def test_memory_probe_failure_writes_nothing(self, config, monkeypatch):
        def broken():
            raise OSError("no /proc/meminfo")

        monkeypatch.setattr(memory_probe.psutil, "virtual_memory", broken)

        result = generate_configuration(config)

        assert not result.ok
        assert "Unable to read system memory" in result.error
        assert result.reports == ()
        assert not config.install_dir.exists()

    def test_unwritable_config_dir_writes_nothing(self, config):
        config.install_dir.parent.mkdir(parents=True, exist_ok=True)
        config.install_dir.write_text("a file where the install dir should be")

        result = generate_configuration(config, total_mb=2048)

        assert not result.ok
        assert result.plan is not None
        assert result.reports == ()

    def test_write_failure_aborts_and_keeps_prior_artifacts(self, config):
        config.docker_dir.mkdir(parents=True)
        config.postgresql_conf_path.mkdir()

        result = generate_configuration(config, total_mb=2048)

        assert not result.ok
        assert "postgresql.conf" in result.error
        assert [r.name for r in result.reports] == ["env_fragment"]
        assert config.env_path.exists()
        assert not config.compose_override_path.exists()

    def test_probe_used_when_total_missing(self, config, monkeypatch):
        monkeypatch.setattr(
            memory_probe.psutil, "virtual_memory", lambda: SimpleNamespace(total=8 * 1024 ** 3)
        )

        result = generate_configuration(config)

        assert result.ok
        assert result.budget.total_mb == 8192
        assert (result.plan.db_mem_mb, result.plan.app_mem_mb) == (2048, 3072)

    def test_unusable_caddyfile_location_writes_nothing(self, config, proxy_service):
        blocker = config.caddyfile_path.parent
        blocker.parent.mkdir(parents=True, exist_ok=True)
        blocker.write_text("a file where the Caddy config dir should be")

        result = generate_configuration(
            config, total_mb=2048, domain="forum.acme.org", proxy_service=proxy_service
        )

        assert not result.ok
        assert "Caddyfile" in result.error
        assert result.reports == ()
        assert not config.env_path.exists()
        assert not config.postgresql_conf_path.exists()
        assert proxy_service.restarts == 0
