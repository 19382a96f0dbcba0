"""
Tests for the command-line entry point and configuration loading.
"""

import json

import pytest


class TestLoadConfig:
    """Test TOML configuration loading."""

    def test_defaults_without_path(self):
        from can_timing.main import load_config

        config = load_config(None)
        assert config['request']['baud_rate'] == 500000
        assert config['request']['sample_point'] == 87.5
        assert config['capability']['preset'] == 'reference-80mhz'

    def test_defaults_for_missing_file(self, tmp_path):
        from can_timing.main import load_config

        config = load_config(str(tmp_path / 'missing.toml'))
        assert config['capability']['preset'] == 'reference-80mhz'

    def test_reads_toml(self, tmp_path):
        from can_timing.main import load_config

        path = tmp_path / 'controller.toml'
        path.write_text(
            '[request]\n'
            'baud_rate = 250000\n'
            'sample_point = 80.0\n'
            '\n'
            '[capability]\n'
            'preset = "stm32-bxcan-36mhz"\n'
            'clock = 48000000\n'
        )
        config = load_config(str(path))
        assert config['request']['baud_rate'] == 250000
        assert config['capability']['clock'] == 48000000


class TestCapabilityFromConfig:
    """Test building capabilities from the [capability] table."""

    def test_preset(self):
        from can_timing.main import capability_from_config

        capability = capability_from_config({'capability': {'preset': 'reference-80mhz'}})
        assert capability.name == 'reference-80mhz'
        assert capability.clock == 80000000

    def test_preset_with_override(self):
        from can_timing.main import capability_from_config

        capability = capability_from_config({
            'capability': {'preset': 'stm32-bxcan-36mhz', 'clock': 48000000}
        })
        assert capability.clock == 48000000
        assert capability.max_ps == 1024
        assert capability.name == 'stm32-bxcan-36mhz (modified)'

    def test_explicit_fields(self, small_capability):
        from can_timing.main import capability_from_config

        capability = capability_from_config({'capability': small_capability.to_dict()})
        assert capability == small_capability

    def test_fractional_override_rejected(self):
        from can_timing.main import capability_from_config

        with pytest.raises(ValueError, match="whole number"):
            capability_from_config({
                'capability': {'preset': 'reference-80mhz', 'max_ps': 512.5}
            })

    def test_unknown_preset(self):
        from can_timing.main import capability_from_config

        with pytest.raises(ValueError, match="Unknown device preset"):
            capability_from_config({'capability': {'preset': 'nope'}})

    def test_request_defaults(self):
        from can_timing.main import request_from_config

        request = request_from_config({})
        assert request.desired_baud == 500000
        assert request.desired_sample_point == 87.5


class TestMain:
    """Test the CLI end to end."""

    def test_json_output(self, capsys):
        from can_timing.main import main

        assert main(['--json']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['solution_found'] is True
        assert data['baud_rate'] == 500000
        assert data['prescaler'] == 1

    def test_text_output(self, capsys):
        from can_timing.main import main

        assert main(['--preset', 'stm32-bxcan-36mhz', '--baud', '500000']) == 0
        out = capsys.readouterr().out
        assert 'Prescaler:     9' in out
        assert 'Sample point:  87.50%' in out

    def test_no_solution_exit_status(self, capsys):
        from can_timing.main import main

        assert main(['--baud', '1e9', '--json']) == 1
        assert json.loads(capsys.readouterr().out) == {'solution_found': False}

    def test_invalid_request(self):
        from can_timing.main import main

        assert main(['--sample-point', '150']) == 2

    def test_list_presets(self, capsys):
        from can_timing.main import main

        assert main(['--list-presets']) == 0
        out = capsys.readouterr().out
        assert 'reference-80mhz' in out
        assert 'stm32-bxcan-36mhz' in out

    def test_candidates_listing(self, capsys):
        from can_timing.main import main

        assert main(['--candidates', '3']) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].endswith('feasible candidates')
        assert lines[1].split()[:2] == ['#', 'presc']
        # Best candidate first: prescaler 1, 160 TQ
        assert lines[2].split()[:3] == ['1', '1', '160']

    def test_config_file(self, tmp_path, capsys):
        from can_timing.main import main

        path = tmp_path / 'controller.toml'
        path.write_text(
            '[request]\n'
            'baud_rate = 500000\n'
            'sample_point = 87.5\n'
            '\n'
            '[capability]\n'
            'clock = 8000000\n'
            'min_ps = 1\n'
            'max_ps = 2\n'
            'min_tq = 4\n'
            'max_tq = 25\n'
            'min_prop_seg = 1\n'
            'max_prop_seg = 16\n'
            'min_tseg1 = 2\n'
            'max_tseg1 = 16\n'
            'min_tseg2 = 1\n'
            'max_tseg2 = 8\n'
            'max_sjw = 4\n'
        )
        assert main(['--config', str(path), '--json']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['prescaler'] == 1
        assert data['time_quanta'] == 16

    def test_preset_flag_keeps_config_overrides(self, tmp_path, capsys):
        """--preset swaps the base device; [capability] fields still apply on top."""
        from can_timing.main import main

        path = tmp_path / 'controller.toml'
        path.write_text(
            '[capability]\n'
            'preset = "reference-80mhz"\n'
            'clock = 48000000\n'
        )
        assert main(['--config', str(path), '--preset', 'stm32-bxcan-36mhz', '--json']) == 0
        data = json.loads(capsys.readouterr().out)
        assert data['baud_error'] == 0
        # 48 MHz / 500 kbit/s, not 36 MHz / 500 kbit/s
        assert data['prescaler'] * data['time_quanta'] == 96
        # stm32 limits, not the reference device's
        assert data['time_quanta'] <= 25

    def test_fractional_capability_field_exit_status(self, tmp_path, caplog):
        from can_timing.main import main

        path = tmp_path / 'controller.toml'
        path.write_text(
            '[capability]\n'
            'preset = "reference-80mhz"\n'
            'max_ps = 512.5\n'
        )
        assert main(['--config', str(path)]) == 2
        assert 'whole number' in caplog.text
