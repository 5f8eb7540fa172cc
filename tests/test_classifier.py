"""Tests for the classifier boundary and artifact loading."""

import joblib
import pytest
import numpy as np

from exoctl.classifier import (
    ModelMetadata, SklearnClassifier, Standardizer, ThresholdClassifier,
    load_artifact, save_artifact, to_label
)
from exoctl.errors import ArtifactError, ClassifierError
from exoctl.features import FeatureVector, extract_features_from_arrays
from exoctl.fsm import Label


def metadata_dict(**overrides):
    data = {
        'sampling_rate_hz': 100,
        'window_size_samples': 100,
        'step_size_samples': 50,
        'feature_mean': [9.8, 0.5, 0.3, 0.1, 1.0],
        'feature_std': [0.2, 0.5, 0.2, 0.1, 0.8],
        'walking_labels': [1, 2, 3, 4, 5, 6],
        'non_walking_labels': [7, 8, 9, 10, 11, 12],
    }
    data.update(overrides)
    return data


class RecordingModel:
    """Minimal estimator that records what it was asked to predict."""

    def __init__(self, output=1):
        self.output = output
        self.seen = []

    def predict(self, X):
        self.seen.append(np.array(X))
        return np.array([self.output])


class TestModelMetadata:
    def test_from_dict(self):
        meta = ModelMetadata.from_dict(metadata_dict())
        assert meta.sampling_rate_hz == 100.0
        assert meta.window_size_samples == 100
        assert meta.walking_labels == [1, 2, 3, 4, 5, 6]

    def test_missing_key(self):
        data = metadata_dict()
        del data['feature_std']
        with pytest.raises(ArtifactError, match='feature_std'):
            ModelMetadata.from_dict(data)

    @pytest.mark.parametrize("overrides", [
        {'sampling_rate_hz': 0},
        {'window_size_samples': 10, 'step_size_samples': 20},
        {'feature_mean': [0.0, 1.0]},
        {'feature_std': [1.0, 1.0, 0.0, 1.0, 1.0]},
        {'feature_std': [1.0, np.nan, 1.0, 1.0, 1.0]},
        {'window_size_samples': 'abc'},
    ])
    def test_malformed(self, overrides):
        with pytest.raises(ArtifactError):
            ModelMetadata.from_dict(metadata_dict(**overrides))

    def test_not_a_dict(self):
        with pytest.raises(ArtifactError):
            ModelMetadata.from_dict([1, 2, 3])


class TestSklearnClassifier:
    def test_applies_training_standardization(self):
        model = RecordingModel()
        clf = SklearnClassifier(model, ModelMetadata.from_dict(metadata_dict()))
        fv = FeatureVector(10.0, 1.0, 0.5, 0.2, 1.8)

        assert clf.classify(fv) is Label.WALKING
        expected = (fv.as_array() - np.array([9.8, 0.5, 0.3, 0.1, 1.0])) / \
            np.array([0.2, 0.5, 0.2, 0.1, 0.8])
        np.testing.assert_allclose(model.seen[0], expected.reshape(1, -1))

    def test_deterministic(self):
        clf = SklearnClassifier(RecordingModel(0), ModelMetadata.from_dict(metadata_dict()))
        fv = FeatureVector(9.8, 0.0, 0.0, 0.0, 0.0)
        assert clf.classify(fv) is clf.classify(fv) is Label.STANDING

    @pytest.mark.parametrize("output", [2, -1, 0.5, 'walk', None])
    def test_unknown_output_rejected(self, output):
        clf = SklearnClassifier(RecordingModel(output), ModelMetadata.from_dict(metadata_dict()))
        with pytest.raises(ClassifierError):
            clf.classify(FeatureVector(9.8, 0.0, 0.0, 0.0, 0.0))

    def test_predict_failure_wrapped(self):
        class Broken:
            def predict(self, X):
                raise RuntimeError("boom")

        clf = SklearnClassifier(Broken(), ModelMetadata.from_dict(metadata_dict()))
        with pytest.raises(ClassifierError, match='boom'):
            clf.classify(FeatureVector(9.8, 0.0, 0.0, 0.0, 0.0))

    def test_model_without_predict(self):
        with pytest.raises(ArtifactError):
            SklearnClassifier(object(), ModelMetadata.from_dict(metadata_dict()))


class TestToLabel:
    def test_accepts_numpy_ints(self):
        assert to_label(np.int64(1)) is Label.WALKING
        assert to_label(np.float64(0.0)) is Label.STANDING

    def test_rejects_fraction(self):
        with pytest.raises(ClassifierError):
            to_label(0.7)


class TestStandardizer:
    def test_apply(self):
        s = Standardizer([1.0, 2.0], [2.0, 4.0])
        np.testing.assert_allclose(s.apply([3.0, 2.0]), [1.0, 0.0])


class TestThresholdClassifier:
    def test_static_vs_walking(self, sample_imu_data, walking_imu_data):
        clf = ThresholdClassifier()
        static = extract_features_from_arrays(sample_imu_data['acc'][:100],
                                              sample_imu_data['gyro'][:100], 100.0)
        walking = extract_features_from_arrays(walking_imu_data['acc'][:100],
                                               walking_imu_data['gyro'][:100], 100.0)
        assert clf.classify(static) is Label.STANDING
        assert clf.classify(walking) is Label.WALKING


class TestArtifact:
    def test_load_trained_svm(self, trained_artifact, walking_imu_data, sample_imu_data):
        clf = load_artifact(trained_artifact)
        assert clf.metadata.window_size_samples == 100
        assert type(clf.model).__name__ == 'SVC'

        walking = extract_features_from_arrays(walking_imu_data['acc'][:100],
                                               walking_imu_data['gyro'][:100], 100.0)
        static = extract_features_from_arrays(sample_imu_data['acc'][:100],
                                              sample_imu_data['gyro'][:100], 100.0)
        assert clf.classify(static) is Label.STANDING
        assert clf.classify(walking) in (Label.STANDING, Label.WALKING)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ArtifactError, match='not found'):
            load_artifact(tmp_path / 'missing.joblib')

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / 'garbage.joblib'
        path.write_bytes(b'not a pickle')
        with pytest.raises(ArtifactError):
            load_artifact(path)

    def test_wrong_payload(self, tmp_path):
        path = tmp_path / 'model_only.joblib'
        joblib.dump(RecordingModel(), path)
        with pytest.raises(ArtifactError):
            load_artifact(path)

    def test_malformed_metadata(self, tmp_path):
        path = tmp_path / 'bad_meta.joblib'
        joblib.dump({'model': RecordingModel(), 'metadata': {'sampling_rate_hz': 100}}, path)
        with pytest.raises(ArtifactError):
            load_artifact(path)

    def test_save_round_trip(self, tmp_path):
        path = save_artifact(RecordingModel(0), metadata_dict(step_size_samples=25),
                             tmp_path / 'sub' / 'model.joblib')
        clf = load_artifact(path)
        assert clf.metadata.step_size_samples == 25
        assert clf.classify(FeatureVector(9.8, 0.0, 0.0, 0.0, 0.0)) is Label.STANDING
