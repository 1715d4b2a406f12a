"""
Tests for the operator-facing summary output.
"""

from snakk_installer.generate_config import generate_configuration
from snakk_installer.summary import print_summary


class TestPrintSummary:
    def test_url_uses_first_host_address(self, config, make_runner, capsys):
        result = generate_configuration(config, total_mb=2048)
        runner = make_runner(responses={("hostname", "-I"): {"stdout": "10.0.0.5 172.17.0.1 fe80::1"}})

        print_summary(config, result, runner=runner)

        out = capsys.readouterr().out
        assert "Visit http://10.0.0.5:17000" in out
        assert runner.commands == [["hostname", "-I"]]

    def test_placeholder_when_address_unknown(self, config, make_runner, capsys):
        result = generate_configuration(config, total_mb=2048)
        runner = make_runner(responses={("hostname", "-I"): {"ok": False}})

        print_summary(config, result, runner=runner)

        assert "Visit http://<server-ip>:17000" in capsys.readouterr().out

    def test_domain_skips_address_lookup(self, config, make_runner, capsys):
        result = generate_configuration(config, total_mb=2048)
        runner = make_runner()

        print_summary(config, result, domain="forum.acme.org", runner=runner)

        assert "Visit https://forum.acme.org" in capsys.readouterr().out
        assert runner.commands == []

    def test_reports_generated_password(self, config, make_runner, capsys):
        result = generate_configuration(config, total_mb=2048)
        credential = result.report_for("env_fragment").details["credential"]

        print_summary(config, result, runner=make_runner())

        assert f"Password:  {credential}" in capsys.readouterr().out
