import importlib.util
import json
import os
import re
import tempfile
from pathlib import Path

import numpy as np
import pytest

from config.config_loader import load_config
from spectral_analysis.analyzer import SpectralAnalyzer
from spectral_analysis.core import pipeline
from spectral_analysis.core.binning import PixelBlock
from spectral_analysis.core.calibration import assess_blackout
from spectral_analysis.core.errors import DimensionMismatchError
from spectral_analysis.data_loader import load_pixel_block, load_spectral_csv, save_pixel_block
from spectral_analysis.visualization import DisplayScaleTracker, display_scale_max

REPO_ROOT = Path(__file__).resolve().parents[1]


def _block(rgb, width=100, height=20):
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[:, :, :3] = rgb
    pixels[:, :, 3] = 255
    return PixelBlock(pixels)


def _load_cli():
    spec = importlib.util.spec_from_file_location("spectrum_cli", REPO_ROOT / "scripts" / "spectrum_cli.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


# ----------------------
# Frame processing
# ----------------------

def test_process_frame_returns_configured_resolution():
    profile = pipeline.process_frame(_block((120, 80, 60), width=37))
    assert profile.shape == (100,)
    assert np.all(np.isfinite(profile))
    assert np.all(profile >= 0)


def test_process_frame_uses_config_resolution(monkeypatch):
    cfg = load_config()
    cfg['spectrum']['resolution'] = 50
    monkeypatch.setattr(pipeline, 'CONFIG', cfg)
    assert pipeline.process_frame(_block((100, 100, 100))).shape == (50,)


def test_process_frame_rejects_mismatched_blackout():
    with pytest.raises(DimensionMismatchError):
        pipeline.process_frame(_block((100, 100, 100), width=100), _block((5, 5, 5), width=60))


def test_self_calibrated_green_frame_is_dark():
    block = _block((0, 200, 0))
    profile = pipeline.process_frame(block, block)
    assert np.all(profile == 0.0)
    result = pipeline.analyze_pair(block, block, block)
    assert np.all(result.absorbance == 0.0)
    assert result.peaks == []


def test_analyze_pair_half_transmission():
    result = pipeline.analyze_pair(_block((200, 200, 200)), _block((100, 100, 100)))
    assert result.wavelengths[0] == 380
    assert result.wavelengths[-1] == 750
    assert result.absorbance.max() == pytest.approx(np.log10(2.0))
    assert result.peaks == []
    summary = result.summary()
    assert summary['resolution'] == 100
    assert summary['peaks'] == []


# ----------------------
# Export
# ----------------------

def test_spectral_csv_layout(tmp_path):
    result = pipeline.analyze_pair(_block((200, 200, 200)), _block((100, 100, 100)))
    path = pipeline.save_spectral_csv(result, str(tmp_path / 'out.csv'))

    lines = Path(path).read_text().splitlines()
    assert lines[0] == 'Wavelength (nm),Reference Intensity,Sample Intensity,Absorbance'
    assert len(lines) == 101
    row = re.compile(r'^\d{3},\d+\.\d{2},\d+\.\d{2},\d\.\d{4}$')
    assert all(row.match(line) for line in lines[1:])
    assert lines[1] == '380,240.00,120.00,0.3010'

    data = load_spectral_csv(path)
    assert list(data.columns) == ['wavelength', 'reference', 'sample', 'absorbance']
    assert data['wavelength'].iloc[-1] == 750
    assert data['absorbance'].iloc[0] == pytest.approx(0.301)


def test_load_spectral_csv_requires_columns(tmp_path):
    path = tmp_path / 'bad.csv'
    path.write_text('a,b\n1,2\n')
    with pytest.raises(ValueError):
        load_spectral_csv(path)


def test_save_analysis_outputs():
    result = pipeline.analyze_pair(_block((200, 200, 200)), _block((100, 100, 100)))
    with tempfile.TemporaryDirectory() as tmp:
        outputs = pipeline.save_analysis_outputs(result, tmp)
        for key in ('csv', 'summary', 'spectra_plot', 'absorbance_plot'):
            assert os.path.isfile(outputs[key])
        with open(outputs['summary'], encoding='utf-8') as f:
            payload = json.load(f)
    assert payload['resolution'] == 100
    assert 'generated_at' in payload


def test_pixel_block_png_round_trip(tmp_path):
    pixels = np.zeros((30, 40, 4), dtype=np.uint8)
    pixels[:, :, 0] = np.arange(40, dtype=np.uint8)
    pixels[:, :, 3] = 255
    path = save_pixel_block(PixelBlock(pixels), tmp_path / 'frame.png')

    block = load_pixel_block(path)
    assert block.shape == (30, 40)
    assert np.array_equal(block.pixels, pixels)

    cropped = load_pixel_block(path, roi=(10, 5, 20, 8))
    assert cropped.shape == (8, 20)
    assert cropped.pixels[0, 0, 0] == 10


def test_load_pixel_block_missing_file(tmp_path):
    with pytest.raises(OSError):
        load_pixel_block(tmp_path / 'missing.png')


# ----------------------
# Session and display
# ----------------------

def test_blackout_grades():
    assert assess_blackout(_block((5, 5, 5))).grade == 'good'
    assert assess_blackout(_block((20, 20, 20))).grade == 'medium'
    quality = assess_blackout(_block((40, 40, 40)))
    assert quality.grade == 'poor'
    assert quality.total_noise == 120
    assert not quality.is_good


def test_analyzer_session():
    analyzer = SpectralAnalyzer()
    with pytest.raises(RuntimeError):
        analyzer.analyze()

    quality = analyzer.calibrate_blackout(_block((5, 5, 5)))
    assert quality.is_good
    reference = analyzer.capture_reference(_block((200, 200, 200)))
    sample = analyzer.capture_sample(_block((100, 100, 100)))
    assert reference.shape == sample.shape == (100,)

    result = analyzer.analyze()
    assert np.all((result.absorbance >= 0) & (result.absorbance <= 1))
    assert result.absorbance[0] > 0.3

    with tempfile.TemporaryDirectory() as tmp:
        path = analyzer.export_csv(os.path.join(tmp, 'session.csv'))
        assert len(load_spectral_csv(path)) == 100


def test_analyzer_skips_mismatched_live_frame():
    analyzer = SpectralAnalyzer()
    analyzer.calibrate_blackout(_block((5, 5, 5), width=50))
    assert analyzer.live_spectrum(_block((100, 100, 100), width=100)) is None

    live = analyzer.live_spectrum(_block((100, 100, 100), width=50))
    assert live.max() == pytest.approx(1.0)

    analyzer.clear_blackout()
    assert analyzer.blackout is None
    assert analyzer.live_spectrum(_block((100, 100, 100), width=100)) is not None


def test_display_scale_tracker_decay():
    tracker = DisplayScaleTracker()
    assert tracker.update([0.0, 2.0, 1.0]) == pytest.approx(2.0)
    assert tracker.update([0.0, 1.0]) == pytest.approx(1.9)
    assert tracker.update([5.0]) == pytest.approx(5.0)
    tracker.reset()
    assert tracker.update([0.0, 0.0]) == pytest.approx(0.01)


def test_display_scale_max():
    assert display_scale_max(np.full(50, 0.5)) == 1.0
    assert display_scale_max(np.full(50, 200.0)) == pytest.approx(200.0)
    assert display_scale_max(np.array([])) == 0.1


def test_analyzer_uses_session_config():
    cfg = load_config()
    cfg['spectrum']['resolution'] = 50
    cfg['export']['absorbance_decimals'] = 2
    analyzer = SpectralAnalyzer(cfg)

    reference = analyzer.capture_reference(_block((200, 200, 200)))
    sample = analyzer.capture_sample(_block((100, 100, 100)))
    assert reference.shape == sample.shape == (50,)
    # the module-level config is left alone
    assert pipeline.process_frame(_block((200, 200, 200))).shape == (100,)

    result = analyzer.analyze()
    assert result.wavelengths.size == 50
    with tempfile.TemporaryDirectory() as tmp:
        path = analyzer.export_csv(os.path.join(tmp, 'session.csv'))
        with open(path, encoding='utf-8') as f:
            lines = f.read().splitlines()
    assert len(lines) == 51
    assert lines[1] == '380,240.00,120.00,0.30'


def test_analyze_profiles_takes_peak_settings_from_config():
    profile = np.zeros(100)
    profile[10] = 0.3
    profile[14] = 0.9
    reference = np.full(100, 100.0)
    sample = reference * 10.0 ** -profile

    cfg = load_config()
    cfg['peak_detection']['window'] = 1
    result = pipeline.analyze_profiles(reference, sample, cfg)
    assert [p.index for p in result.peaks] == [10, 14]

    cfg['peak_detection']['proximity_px'] = 40
    result = pipeline.analyze_profiles(reference, sample, cfg)
    assert [p.index for p in result.peaks] == [10]


def test_display_scale_tracker_rejects_non_positive_floor():
    with pytest.raises(ValueError):
        DisplayScaleTracker(min_frame_max=0.0)
    with pytest.raises(ValueError):
        DisplayScaleTracker(decay=1.5)


def test_analyzer_rejects_zero_display_floor():
    cfg = load_config()
    cfg['display']['min_frame_max'] = 0
    with pytest.raises(ValueError):
        SpectralAnalyzer(cfg)


def test_display_scale_tracker_all_zero_first_frame_stays_finite():
    tracker = DisplayScaleTracker()
    normalized = tracker.normalize(np.zeros(10))
    assert np.all(np.isfinite(normalized))
    assert np.all(normalized == 0.0)


# ----------------------
# Command line
# ----------------------

def test_cli_writes_outputs(tmp_path, capsys):
    cli = _load_cli()
    reference = save_pixel_block(_block((200, 200, 200)), tmp_path / 'reference.png')
    sample = save_pixel_block(_block((100, 100, 100)), tmp_path / 'sample.png')
    blackout = save_pixel_block(_block((2, 2, 2)), tmp_path / 'blackout.png')
    out_dir = tmp_path / 'out'

    code = cli.main(['--reference', str(reference), '--sample', str(sample),
                     '--blackout', str(blackout), '--out', str(out_dir)])
    assert code == 0
    assert (out_dir / 'spectral_data.csv').is_file()
    assert (out_dir / 'plots' / 'absorbance.png').is_file()
    assert (out_dir / 'plots' / 'column_profile.png').is_file()
    assert 'quality: good' in capsys.readouterr().out


def test_cli_reports_mismatched_blackout(tmp_path):
    cli = _load_cli()
    reference = save_pixel_block(_block((200, 200, 200)), tmp_path / 'reference.png')
    sample = save_pixel_block(_block((100, 100, 100)), tmp_path / 'sample.png')
    blackout = save_pixel_block(_block((2, 2, 2), width=10), tmp_path / 'blackout.png')

    code = cli.main(['--reference', str(reference), '--sample', str(sample),
                     '--blackout', str(blackout), '--out', str(tmp_path / 'out')])
    assert code == 2
