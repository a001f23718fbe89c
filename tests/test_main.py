"""Main test module for chart-orchestrator."""

from __future__ import annotations

import runpy
from unittest.mock import patch

import pytest

import chart_orchestrator


class TestVersion:
    """Test version information."""

    def test_version_format(self) -> None:
        """Verifies version follows semantic versioning format.

        Business context:
        Semantic versioning communicates compatibility. MAJOR for
        breaking changes, MINOR for features, PATCH for fixes.

        Assertion Strategy:
        Validates 3 parts, all numeric.
        """
        parts = chart_orchestrator.__version__.split(".")
        assert len(parts) == 3
        assert all(part.isdigit() for part in parts)

    def test_title(self) -> None:
        assert chart_orchestrator.__title__ == "chart_orchestrator"

    def test_all_exports_exist(self) -> None:
        for name in chart_orchestrator.__all__:
            assert hasattr(chart_orchestrator, name)


class TestModuleExecution:
    def test_python_m_calls_cli_main(self) -> None:
        with patch("chart_orchestrator.cli.main", return_value=0) as mock_main:
            with pytest.raises(SystemExit) as exc_info:
                runpy.run_module("chart_orchestrator", run_name="__main__")
        mock_main.assert_called_once_with()
        assert exc_info.value.code == 0
