import pytest

from meshctl.utils import RetryError, retry
from meshctl.utils import kube as kube_utils


@pytest.fixture
def loaded(monkeypatch):
    calls = []
    monkeypatch.delenv("KUBECONFIG_CONTENT", raising=False)
    monkeypatch.setattr(kube_utils.config, "load_kube_config",
                        lambda config_file=None: calls.append(config_file))
    return calls


def test_kubeconfig_content_is_written_to_a_temp_file(monkeypatch, loaded):
    monkeypatch.setenv("KUBECONFIG_CONTENT", "apiVersion: v1\nkind: Config\n")

    source = kube_utils.load_kubeconfig()

    assert loaded == [source]
    with open(source) as f:
        assert "kind: Config" in f.read()


def test_explicit_kubeconfig_path(tmp_path, loaded):
    path = tmp_path / "kubeconfig"
    path.write_text("apiVersion: v1\n")

    assert kube_utils.load_kubeconfig(str(path)) == str(path.resolve())
    assert loaded == [str(path.resolve())]


def test_missing_kubeconfig_path(tmp_path, loaded):
    with pytest.raises(FileNotFoundError):
        kube_utils.load_kubeconfig(str(tmp_path / "nope"))
    assert loaded == []


def test_falls_back_to_in_cluster_config(monkeypatch):
    monkeypatch.delenv("KUBECONFIG_CONTENT", raising=False)

    def no_kubeconfig(config_file=None):
        raise kube_utils.config.config_exception.ConfigException("no config")

    in_cluster = []
    monkeypatch.setattr(kube_utils.config, "load_kube_config", no_kubeconfig)
    monkeypatch.setattr(kube_utils.config, "load_incluster_config", lambda: in_cluster.append(True))

    assert kube_utils.load_kubeconfig() == "in-cluster"
    assert in_cluster == [True]


def test_retry_backs_off_then_gives_up():
    waits = []
    calls = []

    @retry(attempts=3, delay=0.5, exceptions=(ConnectionError,), sleep=waits.append)
    def flaky():
        calls.append(1)
        raise ConnectionError("refused")

    with pytest.raises(RetryError) as exc:
        flaky()

    assert len(calls) == 3
    assert waits == [0.5, 1.0]
    assert exc.value.attempts == 3
    assert isinstance(exc.value.__cause__, ConnectionError)


def test_retry_does_not_catch_other_errors():
    calls = []

    @retry(attempts=3, delay=0, exceptions=(ConnectionError,), sleep=lambda s: None)
    def broken():
        calls.append(1)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        broken()
    assert len(calls) == 1
