"""Tests for the installer provider."""

import httpx
import pytest
from unittest.mock import Mock

from lxcspawn.errors import FetchError, IntegrityError
from lxcspawn.models.config import AppConfig
from lxcspawn.models.installer import InstallerArtifact, PatchRule
from lxcspawn.providers.installer import InstallerProvider, default_rules, sanitize


SCRIPT = """\
#!/bin/bash
set -e
apt-get install -y git python3
curl -fsSL https://get.docker.com | sh
mkdir -p /opt/freidntl
cd /opt/freidntl && git clone https://example.com/app.git .
Docker Compose up -d
SYSTEMCTL enable app
echo done
"""

URL = "https://gist.example.com/raw/install.sh"


async def make_provider(handler=None, **installer):
    provider = InstallerProvider()
    await provider.initialize(AppConfig(installer=installer), Mock())
    if handler is not None:
        provider.transport = httpx.MockTransport(handler)
    return provider


class TestSanitize:
    """Test the patch rule engine."""

    def test_default_rules(self):
        content, report = sanitize(SCRIPT, default_rules("/opt/mikrowizard"))

        assert content == (
            "#!/bin/bash\n"
            "set -e\n"
            "apt-get install -y git python3\n"
            "mkdir -p /opt/mikrowizard\n"
            "cd /opt/mikrowizard && git clone https://example.com/app.git .\n"
            "echo done\n"
        )
        assert report.removed_count == 3
        assert report.replaced_count == 2
        assert [c.line_number for c in report.changes if c.removed] == [4, 7, 8]
        assert [c.before for c in report.changes if c.removed][1:] == [
            "Docker Compose up -d",
            "SYSTEMCTL enable app",
        ]

    def test_clean_script_untouched(self):
        script = "#!/bin/bash\necho hello\n"

        content, report = sanitize(script, default_rules("/opt/app"))

        assert content == script
        assert report.changes == []
        assert report.warnings == []

    def test_only_newlines_split_lines(self):
        script = "echo a\r\nprintf \"x\x0cy\u2028z\"\ndocker ps\r\n"

        content, report = sanitize(script, default_rules("/opt/app"))

        assert content == "echo a\r\nprintf \"x\x0cy\u2028z\"\n"
        assert report.removed_count == 1
        assert report.changes[0].line_number == 3

    def test_missing_trailing_newline_kept(self):
        content, _ = sanitize("echo a\ndocker ps", default_rules("/opt/app"))

        assert content == "echo a"

    def test_rules_apply_in_order(self):
        rules = [
            PatchRule(action="replace", pattern="podman", replacement="docker"),
            PatchRule(action="remove_line", pattern="docker"),
        ]

        content, report = sanitize("podman run x\necho ok\n", rules)

        assert content == "echo ok\n"
        assert report.replaced_count == 1
        assert report.removed_count == 1

    def test_failing_rule_is_skipped(self):
        rules = [
            PatchRule(action="replace", pattern="echo"),
            PatchRule(action="remove_line", pattern="docker"),
        ]

        content, report = sanitize("echo a\ndocker ps\n", rules)

        assert content == "echo a\n"
        assert report.removed_count == 1
        assert len(report.warnings) == 1
        assert "failed" in report.warnings[0]

    def test_warns_on_continued_command(self):
        script = "apt-get install -y \\\n    docker-ce \\\n    git\n"

        content, report = sanitize(script, default_rules("/opt/app"))

        assert "docker" not in content
        assert any("continued command" in w for w in report.warnings)

    def test_warns_on_compound_command(self):
        _, report = sanitize("cd /tmp && docker build .\n", default_rules("/opt/app"))

        assert report.removed_count == 1
        assert any("compound command" in w for w in report.warnings)


class TestInstallerProvider:
    """Test fetching and verifying the installer."""

    @pytest.mark.asyncio
    async def test_fetch(self):
        def handler(request):
            assert str(request.url) == URL
            return httpx.Response(200, text=SCRIPT)

        provider = await make_provider(handler, url=URL)

        artifact = await provider.fetch()

        assert artifact.url == URL
        assert artifact.content == SCRIPT

    @pytest.mark.asyncio
    async def test_fetch_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, text=SCRIPT)

        provider = await make_provider(handler, url=URL, retries=3)

        artifact = await provider.fetch()

        assert len(calls) == 3
        assert artifact.content == SCRIPT

    @pytest.mark.asyncio
    async def test_fetch_gives_up(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        provider = await make_provider(handler, url=URL, retries=2)

        with pytest.raises(FetchError) as exc_info:
            await provider.fetch()

        assert len(calls) == 2
        assert URL in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fetch_requires_https(self):
        provider = await make_provider()

        with pytest.raises(FetchError):
            await provider.fetch("http://gist.example.com/install.sh")

    @pytest.mark.asyncio
    async def test_verify(self):
        provider = await make_provider(min_size=100)

        provider.verify(InstallerArtifact(url=URL, content=SCRIPT))

        with pytest.raises(IntegrityError) as exc_info:
            provider.verify(InstallerArtifact(url=URL, content="  \n"))
        assert "empty" in str(exc_info.value)

        with pytest.raises(IntegrityError) as exc_info:
            provider.verify(InstallerArtifact(url=URL, content="#!/bin/bash\n"))
        assert "too small" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_patch_uses_configured_app_dir(self):
        provider = InstallerProvider()
        await provider.initialize(AppConfig(application={"app_dir": "/srv/app"}), Mock())

        artifact = provider.patch(InstallerArtifact(url=URL, content=SCRIPT))

        assert "/srv/app" in artifact.content
        assert "/opt/freidntl" not in artifact.content
        assert artifact.report.removed_count == 3
