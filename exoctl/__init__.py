"""
Real-time locomotion-intent control loop for a hip exoskeleton.

Usage:
    from exoctl import RealtimeController, load_artifact, load_config, Recording

    classifier = load_artifact('results/binary_svm.joblib')
    controller = RealtimeController(load_config('config/exo/default.yaml'), classifier)
    result = controller.run(Recording.from_csv('session.csv'))
"""

from .classifier import (
    Classifier,
    ModelMetadata,
    SklearnClassifier,
    ThresholdClassifier,
    load_artifact,
    save_artifact
)
from .config import ControllerConfig, load_config
from .controller import (
    RealtimeController,
    LiveController,
    ControllerResult,
    StepOutput,
    TickRecord,
    expected_tick_count
)
from .errors import ConfigError, ArtifactError, ClassifierError, ClassifierLatencyError
from .features import FeatureVector, extract_features
from .fsm import Label, FSMState, HysteresisStateMachine
from .joint_angle import joint_angle
from .samples import Sample, SampleWindow, StreamFrame, Recording

__version__ = '0.1.0'

__all__ = [
    # Control loop
    'RealtimeController',
    'LiveController',
    'ControllerResult',
    'StepOutput',
    'TickRecord',
    'expected_tick_count',

    # Components
    'FeatureVector',
    'extract_features',
    'Label',
    'FSMState',
    'HysteresisStateMachine',
    'joint_angle',

    # Classifier boundary
    'Classifier',
    'ModelMetadata',
    'SklearnClassifier',
    'ThresholdClassifier',
    'load_artifact',
    'save_artifact',

    # Inputs and configuration
    'Sample',
    'SampleWindow',
    'StreamFrame',
    'Recording',
    'ControllerConfig',
    'load_config',

    # Errors
    'ConfigError',
    'ArtifactError',
    'ClassifierError',
    'ClassifierLatencyError',
]
