from __future__ import annotations

import json
from pathlib import Path

import meetquery_py


def test_version_matches_version_json() -> None:
    version_file = Path(__file__).resolve().parents[2] / "src" / "meetquery_py" / "version.json"
    data = json.loads(version_file.read_text(encoding="utf-8"))
    assert meetquery_py.__repo_version__ == data["version"]
    if "-rc." in data["version"]:
        assert "rc" in meetquery_py.__version__
    else:
        assert meetquery_py.__version__ == data["version"]


def test_normalize_repo_version_handles_release_candidates() -> None:
    assert meetquery_py._normalize_repo_version("1.2.3") == "1.2.3"
    assert meetquery_py._normalize_repo_version("1.2.3-rc.4") == "1.2.3rc4"
