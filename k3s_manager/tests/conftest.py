import os

import pytest


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, tmp_path_factory, monkeypatch):
    """
    Keep a developer's real ~/.k3s-manager.yaml and K3S_MANAGER_* variables
    out of the tests.
    """
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("K3S_MANAGER_"):
            monkeypatch.delenv(key)
    return home
