"""CLI for running and calibrating the audio sensor."""

import argparse
import logging
import sys
import time
from pathlib import Path

from audio_sensor.audio import ArrayCapture, AudioCollector, SensorConfig
from audio_sensor.audio.config import FFT_WINDOWS, SampleType, SignalType
from audio_sensor.calibration import load_calibration, save_calibration
from audio_sensor.pipeline import SamplingPipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sample audio into normalized sensor observations")
    parser.add_argument("--wav", type=Path, default=None, help="Replay a WAV file instead of the microphone")
    parser.add_argument("--device", type=int, default=None, help="Input device index (list with --list-devices)")
    parser.add_argument("--list-devices", action="store_true", help="List available audio input devices and exit")
    parser.add_argument(
        "--sample-type",
        choices=[t.value for t in SampleType],
        default=SampleType.SPECTRUM.value,
    )
    parser.add_argument(
        "--signal-type",
        choices=[t.value for t in SignalType],
        default=SignalType.STEREO.value,
    )
    parser.add_argument("--buffer-length", type=int, default=1, help="Sampling steps per observation (1-100)")
    parser.add_argument("--fft-bits", type=int, default=10, help="FFT resolution bit width (6-13)")
    parser.add_argument("--min-freq", type=float, default=20.0, help="Lowest observed frequency in Hz")
    parser.add_argument("--max-freq", type=float, default=20000.0, help="Highest observed frequency in Hz")
    parser.add_argument("--floor-db", type=float, default=-60.0, help="Decibel floor (-192 to -12)")
    parser.add_argument("--window", choices=FFT_WINDOWS, default="rectangular", help="FFT window")
    parser.add_argument("--sample-rate", type=int, default=48_000)
    parser.add_argument("--step-sec", type=float, default=0.02, help="Seconds per sampling step")
    parser.add_argument("--normalize", action="store_true", help="Apply peak normalization")
    parser.add_argument("--calibrate", action="store_true", help="Measure peaks while sampling")
    parser.add_argument("--steps", type=int, default=500, help="Number of sampling steps (default: 500)")
    parser.add_argument("--save-calibration", type=Path, default=None, help="Write expansion factors (.npz)")
    parser.add_argument("--load-calibration", type=Path, default=None, help="Restore expansion factors (.npz)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def config_from_args(args: argparse.Namespace) -> SensorConfig:
    config = SensorConfig(
        signal_type=SignalType(args.signal_type),
        sample_type=SampleType(args.sample_type),
        buffer_length=args.buffer_length,
        normalize=args.normalize or args.calibrate,
        fft_bit_width=args.fft_bits,
        fft_window=args.window,
        sample_rate=args.sample_rate,
        step_sec=args.step_sec,
    )
    config = config.with_frequency_band(args.min_freq, args.max_freq)
    return config.with_fft_floor_db(args.floor_db).with_amp_floor_db(args.floor_db)


def main() -> None:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_devices:
        try:
            import sounddevice as sd
            print(sd.query_devices())
        except (ImportError, OSError):
            print("sounddevice not installed: pip install sounddevice", file=sys.stderr)
            sys.exit(1)
        return

    config = config_from_args(args)
    if args.wav is not None:
        capture = ArrayCapture.from_wav(args.wav, config)
        collector = None
    else:
        collector = AudioCollector(config, device=args.device)
        capture = collector

    pipeline = SamplingPipeline(config=config, capture=capture)
    pipeline.calibrating = args.calibrate
    if args.load_calibration is not None:
        load_calibration(args.load_calibration, pipeline)

    clipped_steps = 0
    sampled_steps = 0

    def on_step(step_index: int, window_complete: bool) -> None:
        nonlocal clipped_steps, sampled_steps
        sampled_steps += 1
        clipped_steps += int(pipeline.is_clipping)
        if window_complete:
            obs = pipeline.observation()
            print(
                f"step {step_index:3d}  clipping={pipeline.is_clipping!s:5}  "
                f"min={obs.min():.3f} max={obs.max():.3f} mean={obs.mean():.3f}"
            )

    pipeline.subscribe(on_step)
    print(f"{pipeline.shape} ({pipeline.samples_per_channel} samples per channel)")

    try:
        if collector is not None:
            collector.start()
            # Fill enough history for the first step.
            time.sleep(max(config.step_sec, 2 * config.fft_resolution / config.sample_rate))
        for _ in range(args.steps):
            if args.wav is not None and capture.exhausted:
                break
            pipeline.step()
            if collector is not None:
                time.sleep(config.step_sec)
    except KeyboardInterrupt:
        pass
    finally:
        if collector is not None:
            collector.stop()

    if args.calibrate:
        print(f"Clipping in {clipped_steps} of {sampled_steps} steps")
    if args.save_calibration is not None:
        path = save_calibration(args.save_calibration, pipeline)
        print(f"Saved: {path}")


if __name__ == "__main__":
    main()
