"""Unit tests for the terraform adapter. subprocess.run is replaced, terraform never runs."""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from fuoco.error import ApplyError, ProvisionException, TeardownError
from fuoco.terraform_provisioner import VARS_FILE, TerraformProvisioner
from fuoco.workspace import workspace_dir

VARIABLES = {"instance_type": "t3.micro", "region": "us-east-1"}
OUTPUT_JSON = json.dumps(
    {
        "public_ip": {"sensitive": False, "type": "string", "value": "203.0.113.5"},
        "ports": {"sensitive": False, "type": ["list", "number"], "value": [22, 80]},
    }
)


class FakeTerraform:
    """Stands in for subprocess.run and records each terraform invocation."""

    def __init__(self, fail_on=None, stderr=b"Error: something broke"):
        self.calls = []
        self.fail_on = fail_on
        self.stderr = stderr

    def __call__(self, cmd, cwd=None, capture_output=False, check=False):
        self.calls.append((cmd, cwd, capture_output))
        subcommand = cmd[1]
        if subcommand == self.fail_on:
            return subprocess.CompletedProcess(cmd, 1, b"", self.stderr)
        if subcommand == "init":
            (Path(cwd) / ".terraform").mkdir()
        stdout = OUTPUT_JSON.encode() if subcommand == "output" else b""
        return subprocess.CompletedProcess(cmd, 0, stdout, b"")

    def subcommands(self):
        return [cmd[1] for cmd, _, _ in self.calls]


@pytest.fixture
def template(tmp_path):
    template_dir = tmp_path / "templates" / "aws"
    template_dir.mkdir(parents=True)
    (template_dir / "main.tf").write_text('variable "region" {}\n')
    return template_dir / "main.tf"


@pytest.fixture
def root(tmp_path):
    return tmp_path / "cache"


class TestApply:
    def test_apply_runs_init_apply_output(self, template, root):
        fake = FakeTerraform()
        with patch("fuoco.util.subprocess.run", fake):
            outputs = TerraformProvisioner(workspace_root=root).apply(template, VARIABLES, False)

        assert fake.subcommands() == ["init", "apply", "output"]
        assert outputs == {"public_ip": "203.0.113.5", "ports": "[22, 80]"}
        work = workspace_dir(template.parent, root)
        assert all(cwd == str(work) for _, cwd, _ in fake.calls)
        assert (work / "main.tf").exists()
        assert json.loads((work / VARS_FILE).read_text()) == VARIABLES

    def test_init_runs_once_per_workspace(self, template, root):
        fake = FakeTerraform()
        provisioner = TerraformProvisioner(workspace_root=root)
        with patch("fuoco.util.subprocess.run", fake):
            provisioner.apply(template, VARIABLES, False)
            provisioner.destroy(template, VARIABLES, False)

        assert fake.subcommands() == ["init", "apply", "output", "destroy"]

    def test_verbose_streams_apply_but_captures_output(self, template, root):
        fake = FakeTerraform()
        with patch("fuoco.util.subprocess.run", fake):
            TerraformProvisioner(workspace_root=root).apply(template, VARIABLES, True)

        captured = {cmd[1]: capture for cmd, _, capture in fake.calls}
        assert captured == {"init": False, "apply": False, "output": True}

    def test_apply_failure_raises_apply_error(self, template, root):
        fake = FakeTerraform(fail_on="apply", stderr=b"Error: UnauthorizedOperation")
        with patch("fuoco.util.subprocess.run", fake):
            with pytest.raises(ApplyError, match="UnauthorizedOperation"):
                TerraformProvisioner(workspace_root=root).apply(template, VARIABLES, False)
        assert "output" not in fake.subcommands()

    def test_init_failure_raises_apply_error(self, template, root):
        fake = FakeTerraform(fail_on="init")
        with patch("fuoco.util.subprocess.run", fake):
            with pytest.raises(ApplyError, match="terraform init failed with exit code 1"):
                TerraformProvisioner(workspace_root=root).apply(template, VARIABLES, False)

    def test_unwritable_variables_file_raises_apply_error(self, template, root):
        work = workspace_dir(template.parent, root)
        (work / ".terraform").mkdir(parents=True)
        (work / VARS_FILE).mkdir()
        fake = FakeTerraform()
        with patch("fuoco.util.subprocess.run", fake):
            with pytest.raises(ApplyError, match="Cannot write Terraform variables"):
                TerraformProvisioner(workspace_root=root).apply(template, VARIABLES, False)
        assert fake.calls == []

    def test_missing_terraform_binary(self, template, root):
        with patch("fuoco.util.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(ProvisionException, match="Command not found: terraform"):
                TerraformProvisioner(workspace_root=root).apply(template, VARIABLES, False)


class TestDestroy:
    def test_destroy_recreates_missing_workspace(self, template, root):
        fake = FakeTerraform()
        with patch("fuoco.util.subprocess.run", fake):
            TerraformProvisioner(workspace_root=root).destroy(template, VARIABLES, False)

        assert fake.subcommands() == ["init", "destroy"]
        work = workspace_dir(template.parent, root)
        assert json.loads((work / VARS_FILE).read_text()) == VARIABLES

    def test_destroy_failure_raises_teardown_error(self, template, root):
        fake = FakeTerraform(fail_on="destroy")
        with patch("fuoco.util.subprocess.run", fake):
            with pytest.raises(TeardownError, match="something broke"):
                TerraformProvisioner(workspace_root=root).destroy(template, VARIABLES, False)


class TestParseOutputs:
    def test_empty(self):
        assert TerraformProvisioner.parse_outputs("") == {}

    def test_keeps_order(self):
        out = json.dumps({"b": {"value": "2"}, "a": {"value": "1"}})
        assert list(TerraformProvisioner.parse_outputs(out)) == ["b", "a"]

    def test_invalid_json(self):
        with pytest.raises(ApplyError, match="Invalid json"):
            TerraformProvisioner.parse_outputs("not json")
