"""Run the audio sensor pipeline on a synthetic sweep or a WAV file.

Usage:
  python pipeline_test.py                        # Spectrum, synthetic sweep
  python pipeline_test.py --amplitude            # Amplitude, synthetic sweep
  python pipeline_test.py --file test.wav        # Spectrum, audio from file
  python pipeline_test.py --file test.wav --output obs.npy   # Save last observation
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

import numpy as np

from audio_sensor.audio import ArrayCapture, SampleType, SensorConfig, SignalType
from audio_sensor.pipeline import SamplingPipeline


def make_sweep(seconds: float = 2.0, sample_rate: int = 48_000) -> np.ndarray:
    """Log sweep from 100 Hz to 10 kHz with a slow volume swell."""
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    f0, f1 = 100.0, 10_000.0
    k = np.log(f1 / f0) / seconds
    phase = 2 * np.pi * f0 * (np.exp(k * t) - 1) / k
    return (np.sin(phase) * np.linspace(0.1, 0.9, len(t))).astype(np.float32)


def main(sample_type=SampleType.SPECTRUM, wav_path=None, output_path=None):
    config = SensorConfig(
        sample_type=sample_type,
        signal_type=SignalType.MONO,
        buffer_length=10,
        normalize=True,
        fft_bit_width=9,
    ).with_frequency_band(100.0, 12_000.0)

    if wav_path:
        wav_path = Path(wav_path)
        if not wav_path.exists():
            print(f"File not found: {wav_path}")
            sys.exit(1)
        capture = ArrayCapture.from_wav(wav_path, config)
        audio_source = "file"
    else:
        capture = ArrayCapture(make_sweep(sample_rate=config.sample_rate), hop=config.step_samples)
        audio_source = "sweep"

    pipeline = SamplingPipeline(config=config, capture=capture)
    pipeline.calibrating = True

    def on_step(step_index, window_complete):
        if window_complete:
            obs = pipeline.observation()
            print(f"window: clipping={pipeline.is_clipping!s:5} mean={obs.mean():.3f} max={obs.max():.3f}")

    pipeline.subscribe(on_step)
    print(f"Running {sample_type.value} sensor ({audio_source} audio)...")
    print(pipeline.shape, "\n")
    while not capture.exhausted:
        pipeline.step()

    if output_path:
        output_path = Path(output_path)
        np.save(output_path, pipeline.observation())
        print(f"\nObservation saved to {output_path}")
    print("\nDone.")


if __name__ == "__main__":
    args = sys.argv[1:]
    sample_type = SampleType.AMPLITUDE if "--amplitude" in args else SampleType.SPECTRUM
    wav_path = None
    output_path = None
    if "--file" in args:
        idx = args.index("--file")
        if idx + 1 < len(args):
            wav_path = args[idx + 1]
    if "--output" in args:
        idx = args.index("--output")
        if idx + 1 < len(args):
            output_path = args[idx + 1]
    main(sample_type=sample_type, wav_path=wav_path, output_path=output_path)
