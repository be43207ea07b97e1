import argparse
import logging
import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running from anywhere
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import numpy as np  # noqa: E402

from spectral_analysis.core import pipeline as pipeline_mod  # noqa: E402
from spectral_analysis.core.binning import column_intensity_profile  # noqa: E402
from spectral_analysis.core.errors import DimensionMismatchError  # noqa: E402
from spectral_analysis.core.calibration import assess_blackout  # noqa: E402
from spectral_analysis.data_loader import load_pixel_block  # noqa: E402
from spectral_analysis.visualization import plot_spectra  # noqa: E402
import matplotlib.pyplot as plt  # noqa: E402
from config.config_loader import load_config  # noqa: E402


def _parse_roi(value):
    if value is None:
        return None
    parts = [p.strip() for p in value.split(',')]
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("--roi must be x,y,width,height")
    try:
        return tuple(int(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError("--roi values must be integers")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Camera spectrophotometer: binning → blackout subtraction → absorbance → peaks"
    )
    parser.add_argument("--reference", required=True, help="Reference (blank) frame image")
    parser.add_argument("--sample", required=True, help="Sample frame image")
    parser.add_argument("--blackout", help="Optional dark frame captured with the light blocked")
    parser.add_argument("--roi", type=_parse_roi, default=None,
                        help="Selection rectangle x,y,width,height applied to every frame "
                             "(default: capture.roi from the config)")
    parser.add_argument("--out", default=str(REPO_ROOT / "output"), help="Output directory")
    parser.add_argument("--config", default=None, help="Alternative YAML configuration file")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config) if args.config else pipeline_mod.CONFIG
    roi = args.roi
    if roi is None:
        roi = config.get('capture', {}).get('roi')

    out_root = os.path.abspath(args.out)

    reference = load_pixel_block(args.reference, roi=roi)
    sample = load_pixel_block(args.sample, roi=roi)
    blackout = load_pixel_block(args.blackout, roi=roi) if args.blackout else None

    print("Running spectral analysis...")
    print(f"  reference: {args.reference} ({reference.width}x{reference.height})")
    print(f"  sample:    {args.sample} ({sample.width}x{sample.height})")
    if blackout is not None:
        quality = assess_blackout(blackout)
        print(f"  blackout:  {args.blackout} (quality: {quality.grade}, "
              f"R={quality.mean_red} G={quality.mean_green} B={quality.mean_blue})")

    try:
        result = pipeline_mod.analyze_pair(reference, sample, blackout, config)
    except DimensionMismatchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    outputs = pipeline_mod.save_analysis_outputs(result, out_root, config)

    # per-column view of the raw sample frame, before binning
    profile_path = os.path.join(out_root, 'plots', 'column_profile.png')
    fig = plot_spectra(
        {'Sample': (np.arange(sample.width), column_intensity_profile(sample))},
        title='Sample column intensity',
        xlabel='Pixel column',
        save_path=profile_path,
    )
    plt.close(fig)
    outputs['column_profile_plot'] = profile_path

    print("\nDetected peaks")
    print("--------------")
    if not result.peaks:
        print("(none)")
    for peak in result.peaks:
        print(f"{peak.wavelength} nm  A={peak.value:.4f}  (bin {peak.index})")

    print("\nOutputs")
    print("-------")
    for key, path in outputs.items():
        print(f"{key}: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
