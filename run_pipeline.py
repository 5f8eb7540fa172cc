"""
Run the exoskeleton control loop over a recorded session.

Usage:
    python run_pipeline.py --model results/binary_svm.joblib --input session.csv
    python run_pipeline.py --synthetic             # standing -> walking -> standing demo
    python run_pipeline.py --synthetic --live --output trace.csv
"""

import argparse
import logging
import sys

import numpy as np

from exoctl import (
    ArtifactError,
    ClassifierError,
    ConfigError,
    LiveController,
    RealtimeController,
    Recording,
    ThresholdClassifier,
    load_artifact,
    load_config,
)
from exoctl.controller import ControllerResult
from exoctl.metrics import binarize_labels, evaluate_commands, format_report, heuristic_ground_truth
from exoctl.synthetic import synthetic_recording

logger = logging.getLogger('run_pipeline')


def get_parser():
    parser = argparse.ArgumentParser(description='Exoskeleton locomotion control loop')
    parser.add_argument('--config', default='config/exo/default.yaml', help='YAML config path')
    parser.add_argument('--model', help='Trained classifier artifact (.joblib)')
    parser.add_argument('--input', help='Session CSV with back_* (and optional hip_*, label) columns')
    parser.add_argument('--activity', help='Activity name for heuristic ground truth')
    parser.add_argument('--synthetic', action='store_true', help='Run on a synthetic recording')
    parser.add_argument('--live', action='store_true', help='Stream samples with trailing windows')
    parser.add_argument('--output', help='Write the per-sample trace to this CSV')
    parser.add_argument('--log-level', default='INFO', help='Logging level')

    # overrides for config values
    parser.add_argument('--filter-type', dest='filter_type', choices=['kalman', 'madgwick'])
    parser.add_argument('--k-on', dest='k_on', type=int)
    parser.add_argument('--k-off', dest='k_off', type=int)
    parser.add_argument('--latency-budget', dest='latency_budget_s', type=float)
    return parser


def run_live(controller: LiveController, recording: Recording) -> ControllerResult:
    angles, commands, ticks = [], [], []
    for out in controller.stream(recording.frames()):
        angles.append(out.angle)
        commands.append(int(out.command))
        if out.tick is not None:
            ticks.append(out.tick)
    return ControllerResult(fs=controller.config.fs, angles=np.array(angles),
                            commands=np.array(commands, dtype=int), ticks=ticks)


def ground_truth_for(recording: Recording, classifier, activity):
    """Annotations when present, else constant truth from the activity name."""
    if recording.labels is not None:
        metadata = getattr(classifier, 'metadata', None)
        if metadata is not None and metadata.walking_labels:
            return binarize_labels(recording.labels, metadata.walking_labels,
                                   metadata.non_walking_labels)
        return np.asarray(recording.labels).astype(int)
    name = activity or recording.activity
    if not name:
        return None
    return heuristic_ground_truth(name, len(recording))


def main(argv=None) -> int:
    parser = get_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO),
                        format='%(asctime)s - %(levelname)s - %(message)s')

    if not args.synthetic and not args.input:
        parser.print_help()
        return 2

    overrides = {k: getattr(args, k) for k in ('filter_type', 'k_on', 'k_off', 'latency_budget_s')}
    try:
        config = load_config(args.config, overrides)
        if args.model:
            classifier = load_artifact(args.model)
        elif args.synthetic:
            logger.info("No model given, using the variance threshold classifier")
            classifier = ThresholdClassifier()
        else:
            parser.error('--model is required with --input')

        if args.synthetic:
            recording = synthetic_recording(fs=config.fs)
        else:
            recording = Recording.from_csv(args.input, activity=args.activity)

        controller_cls = LiveController if args.live else RealtimeController
        controller = controller_cls(config, classifier)
        if args.live:
            result = run_live(controller, recording)
        else:
            result = controller.run(recording)
    except (ConfigError, ArtifactError) as e:
        logger.error(f"Startup failed: {e}")
        return 1
    except ClassifierError as e:
        logger.error(f"Run aborted: {e}")
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Could not process input: {e}")
        return 1

    print(f"Samples: {len(result.angles)}  Ticks: {result.n_ticks}  "
          f"Transitions: {result.n_transitions}")
    print(f"Hip angle range: {result.angles.min():.1f} .. {result.angles.max():.1f} deg"
          if len(result.angles) else "Hip angle range: n/a")

    truth = ground_truth_for(recording, classifier, args.activity)
    if truth is not None and len(truth) == len(result.commands):
        report = evaluate_commands(truth, result.commands)
        print(format_report(report, activity=args.activity or recording.activity))

    if args.output:
        result.to_frame().to_csv(args.output, index=False)
        logger.info(f"Trace written to {args.output}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
