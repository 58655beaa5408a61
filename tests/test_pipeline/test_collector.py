"""Tests for ParameterCollector."""

import subprocess

import pytest
from unittest.mock import AsyncMock, Mock

from lxcspawn.errors import ExecutionError, InputCancelled, InputError
from lxcspawn.models.config import DefaultsConfig
from lxcspawn.models.deployment import DeploymentConfig, NetworkMode
from lxcspawn.pipeline.collector import ParameterCollector, summarize


class ScriptedPrompter:
    """Prompter answering from a label -> answers mapping.

    A missing label takes the offered default. A list of answers is consumed
    one per prompt, so invalid answers can be followed by valid ones.
    """

    def __init__(self, answers=None, password="s3cret", network=None, accept=True):
        self.answers = {k: list(v) if isinstance(v, list) else [v] for k, v in (answers or {}).items()}
        self.password = password
        self.network = network
        self.accept = accept
        self.asked = []
        self.defaults = {}
        self.warnings = []
        self.summary = None

    def ask(self, label, default=None):
        self.asked.append(label)
        self.defaults[label] = default
        queue = self.answers.get(label)
        if queue:
            return queue.pop(0)
        return default if default is not None else ""

    def secret(self, label):
        self.asked.append(label)
        return self.password

    def choose(self, label, choices, default):
        self.asked.append(label)
        self.defaults[label] = default
        return self.network or default

    def warn(self, message):
        self.warnings.append(message)

    def confirm(self, summary):
        self.summary = summary
        return self.accept


@pytest.fixture
def host():
    host = Mock()
    host.next_id = AsyncMock(return_value=104)
    return host


class TestParameterCollector:
    """Test interactive collection."""

    def test_collect_defaults(self, host):
        prompter = ScriptedPrompter()
        collector = ParameterCollector(prompter, host, DefaultsConfig())

        config = collector.collect(suggested_id=104)

        assert prompter.asked == [
            "Container ID", "Hostname", "Root password", "Storage", "Template storage",
            "Disk size (GB)", "Memory (MB)", "CPU cores", "Bridge",
            "VLAN tag (blank for none)", "Network mode",
        ]
        assert prompter.defaults["Container ID"] == "104"
        assert config.ctid == 104
        assert config.hostname == "mikrowizard"
        assert config.storage == "local-lvm"
        assert config.network == NetworkMode.DHCP
        assert config.vlan is None
        assert config.password.get_secret_value() == "s3cret"

    def test_collect_static(self, host):
        prompter = ScriptedPrompter(
            answers={"IP address (CIDR)": "192.168.1.50/24", "Gateway": "192.168.1.1"},
            network="static",
        )
        collector = ParameterCollector(prompter, host)

        config = collector.collect(suggested_id=104)

        assert prompter.asked[-2:] == ["IP address (CIDR)", "Gateway"]
        assert config.network == NetworkMode.STATIC
        assert config.ip == "192.168.1.50/24"
        assert config.gateway == "192.168.1.1"

    def test_invalid_answers_are_asked_again(self, host):
        prompter = ScriptedPrompter(answers={
            "Container ID": ["abc", "0", "200"],
            "Hostname": ["bad_name", "app01"],
            "VLAN tag (blank for none)": ["9999", "42"],
        })
        collector = ParameterCollector(prompter, host)

        config = collector.collect(suggested_id=104)

        assert config.ctid == 200
        assert config.hostname == "app01"
        assert config.vlan == "42"
        assert len(prompter.warnings) == 4
        assert prompter.warnings[0].startswith("Invalid container id:")

    def test_without_suggestion_the_id_must_be_typed(self, host):
        prompter = ScriptedPrompter(answers={"Container ID": ["", "321"]})
        collector = ParameterCollector(prompter, host)

        config = collector.collect()

        assert prompter.defaults["Container ID"] is None
        assert config.ctid == 321
        host.next_id.assert_not_called()

    def test_initial_values_override_defaults(self, host):
        prompter = ScriptedPrompter()
        collector = ParameterCollector(prompter, host)

        config = collector.collect(
            {"ctid": 150, "hostname": "resumed", "memory": None}, suggested_id=104
        )

        assert config.ctid == 150
        assert config.hostname == "resumed"
        assert config.memory == 2048

    @pytest.mark.asyncio
    async def test_suggest_id_failure(self, host):
        host.next_id.side_effect = subprocess.CalledProcessError(1, "pvesh")
        collector = ParameterCollector(ScriptedPrompter(), host)

        with pytest.raises(ExecutionError):
            await collector.suggest_id()

    def test_cancel_propagates(self, host):
        prompter = ScriptedPrompter()
        prompter.secret = Mock(side_effect=InputCancelled("Aborted"))
        collector = ParameterCollector(prompter, host)

        with pytest.raises(InputCancelled):
            collector.collect(suggested_id=104)

    @pytest.mark.asyncio
    async def test_from_options(self, host):
        collector = ParameterCollector(ScriptedPrompter(), host)

        config = await collector.from_options({"password": "pw", "cores": 4, "hostname": None})

        assert config.ctid == 104
        assert config.cores == 4
        assert config.hostname == "mikrowizard"

    @pytest.mark.asyncio
    async def test_from_options_invalid(self, host):
        collector = ParameterCollector(ScriptedPrompter(), host)

        with pytest.raises(InputError) as exc_info:
            await collector.from_options({"network": "static"})

        assert "password" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_confirm(self, host):
        prompter = ScriptedPrompter()
        collector = ParameterCollector(prompter, host)
        config = await collector.from_options({"password": "pw"})

        collector.confirm(config)

        assert prompter.summary["password"] == "********"
        assert "ip" not in prompter.summary

    @pytest.mark.asyncio
    async def test_declined(self, host):
        collector = ParameterCollector(ScriptedPrompter(accept=False), host)
        config = await collector.from_options({"password": "pw"})

        with pytest.raises(InputCancelled) as exc_info:
            collector.confirm(config)

        assert "no changes were made" in str(exc_info.value)


def test_summarize_static_keeps_addresses():
    config = DeploymentConfig(
        ctid=101, hostname="a", storage="s", disk_size=1, memory=1, cores=1,
        password="pw", network="static", ip="10.0.0.2/24", gateway="10.0.0.1",
    )

    summary = summarize(config)

    assert summary["ip"] == "10.0.0.2/24"
    assert summary["password"] == "********"
