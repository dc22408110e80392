import logging
import os

import pytest

from fuoco.provisioner import Provisioner


class FakeProvisioner(Provisioner):
    """Records every apply/destroy call instead of running terraform."""

    def __init__(self, outputs=None, apply_error=None, destroy_error=None):
        self.outputs = outputs if outputs is not None else {"public_ip": "203.0.113.5"}
        self.apply_error = apply_error
        self.destroy_error = destroy_error
        self.apply_calls = []
        self.destroy_calls = []

    def apply(self, template_path, variables, verbose):
        self.apply_calls.append((template_path, dict(variables), verbose))
        if self.apply_error is not None:
            raise self.apply_error
        return dict(self.outputs)

    def destroy(self, template_path, variables, verbose):
        self.destroy_calls.append((template_path, dict(variables), verbose))
        if self.destroy_error is not None:
            raise self.destroy_error


def notifying_listener(message):
    """Listener factory whose listener reports `message` as soon as it is entered."""

    class _Listener:
        def __init__(self, notify):
            self.notify = notify

        def __enter__(self):
            self.notify(message)
            return self

        def __exit__(self, exc_type, exc, tb):
            return None

    return _Listener


def failing_listener(error):
    class _Listener:
        def __init__(self, notify):
            self.notify = notify

        def __enter__(self):
            raise error

        def __exit__(self, exc_type, exc, tb):
            return None

    return _Listener


@pytest.fixture(autouse=True)
def clean_fuoco_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("FUOCO_"):
            monkeypatch.delenv(key)


@pytest.fixture
def fake_provisioner():
    return FakeProvisioner()


@pytest.fixture
def catalog_path(tmp_path):
    path = tmp_path / "providers.yaml"
    path.write_text(
        "aws:\n"
        "  default_instance_type: t3.micro\n"
        "  regions: [us-east-1, eu-west-1]\n"
        "gcp:\n"
        "  default_instance_type: f1-micro\n"
        "  regions: [us-central1]\n"
        "hetzner:\n"
        "  default_instance_type: cx11\n"
        "  regions: []\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger("fuoco")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
