"""Tests for scripts/recompute_health.py argument handling and exit status."""
import os
import runpy
from datetime import date
from unittest.mock import patch

import pytest

from crm_atlas.services.health import RecomputeResult

SCRIPT = os.path.join(os.path.dirname(__file__), '..', '..', 'scripts', 'recompute_health.py')


@pytest.fixture
def cli():
    """Load the script with the batch and logging setup patched out."""
    with patch('crm_atlas.services.health.recompute_health_flags',
               return_value=RecomputeResult(processed=3)) as recompute, \
            patch('crm_atlas.logging_config.configure_logging') as configure:
        namespace = runpy.run_path(SCRIPT)
        yield namespace['main'], recompute, configure


class TestRecomputeHealthCli:

    def test_end_defaults_to_start(self, cli, capsys):
        main, recompute, configure = cli
        assert main(['--start', '2026-01-12']) == 0
        recompute.assert_called_once_with(date(2026, 1, 12), date(2026, 1, 12))
        configure.assert_called_once_with(level=None)
        assert 'Processed: 3' in capsys.readouterr().out

    def test_explicit_range(self, cli):
        main, recompute, _ = cli
        main(['--start', '2026-01-05', '--end', '2026-01-26'])
        recompute.assert_called_once_with(date(2026, 1, 5), date(2026, 1, 26))

    def test_verbose_sets_debug(self, cli):
        main, _, configure = cli
        main(['--start', '2026-01-12', '--verbose'])
        configure.assert_called_once_with(level='DEBUG')

    def test_reversed_range_is_usage_error(self, cli):
        main, recompute, _ = cli
        with pytest.raises(SystemExit) as exc:
            main(['--start', '2026-01-26', '--end', '2026-01-05'])
        assert exc.value.code == 2
        recompute.assert_not_called()

    def test_invalid_date_is_usage_error(self, cli):
        main, recompute, _ = cli
        with pytest.raises(SystemExit):
            main(['--start', 'yesterday'])
        recompute.assert_not_called()

    def test_errors_exit_nonzero(self, cli, capsys):
        main, recompute, _ = cli
        recompute.return_value = RecomputeResult(processed=2, errors=1)
        assert main(['--start', '2026-01-12']) == 1
        assert 'Errors:    1' in capsys.readouterr().out
