"""Two-pass exponential moving average filter for object poses."""

import dataclasses
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field

import numpy as np
import yaml

from posefilter.geometry import (
    construct_pose_matrix,
    extract_rotation_without_scale,
    get_translation,
    normalize_quaternion,
    rotation_matrix_to_quaternion,
    slerp,
)

logger = logging.getLogger(__name__)

_PARAMETER_KEYS = (
    ("ObjectPoseEMAFilter.MaxNumberOfObjectsToFilter", "max_number_of_objects_to_filter"),
    ("ObjectPoseEMAFilter.DtChangeSignificanceFactor", "dt_change_significance_factor"),
    ("ObjectPoseEMAFilter.SmoothingTimeConstant", "smoothing_time_constant"),
)


def _f32(value):
    return float(np.float32(value))


def _identity_quaternion():
    return np.array([1.0, 0.0, 0.0, 0.0])


@dataclass
class SmoothedPoseState:
    """Smoothed translation, rotation quaternion and time of the last update."""

    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    rotation: np.ndarray = field(default_factory=_identity_quaternion)
    last_update_timestamp: float = 0.0

    def copy(self):
        return SmoothedPoseState(
            self.translation.copy(), self.rotation.copy(), self.last_update_timestamp
        )


@dataclass(frozen=True)
class FilterSettings:
    """Tunable filter parameters, held with single precision."""

    smoothing_time_constant: float = 0.0
    dt_change_significance_factor: float = _f32(1.2)
    max_number_of_objects_to_filter: float = 5.0


class _SettingsLoader(yaml.SafeLoader):
    """Safe loader that also accepts OpenCV's ``!!opencv-*`` tags."""


def _construct_opencv_node(loader, tag_suffix, node):
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node, deep=True)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_scalar(node)


_SettingsLoader.add_multi_constructor("tag:yaml.org,2002:opencv-", _construct_opencv_node)


def read_settings_file(path):
    """Read a YAML settings file, accepting the ``%YAML:1.0`` header, into a dict."""
    with open(path, encoding="utf-8") as handle:
        text = handle.read()
    if text.startswith("%YAML"):
        _, _, text = text.partition("\n")
    data = yaml.load(text, Loader=_SettingsLoader)
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(f"settings file {path} does not hold a mapping")
    return dict(data)


def _smoothing_alpha(dt, time_constant):
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return float(1.0 - np.exp(np.float64(-dt) / np.float64(time_constant)))


class ObjectPoseEMAFilter:
    """Smooths a stream of poses with a time-aware two-pass EMA.

    Translation is smoothed linearly, rotation by spherical interpolation;
    the smoothing factor follows from the time between updates and is only
    recomputed when that interval changes significantly.
    """

    def __init__(self, setting_path="", clock=time.monotonic):
        self._clock = clock
        self.settings = FilterSettings()
        self.current_state = SmoothedPoseState()
        self.second_pass_state = SmoothedPoseState()
        self.is_first_pose = True
        self.previous_dt = 0.0
        self.alpha = 0.0

        if setting_path:
            try:
                params = read_settings_file(setting_path)
            except (OSError, ValueError, yaml.YAMLError) as exc:
                logger.error("Failed to open settings file at: %s (%s)", setting_path, exc)
                params = {}
            if not self.parse_filter_params(params):
                logger.error("Error in the config file, the format is not correct")
        else:
            logger.info("Settings file not provided, using default parameters.")

    def parse_filter_params(self, settings):
        """Take parameters from a mapping; return False if any is missing."""
        updates = {}
        complete = True
        for key, attribute in _PARAMETER_KEYS:
            value = settings.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                updates[attribute] = _f32(value)
            else:
                logger.error("%s parameter doesn't exist", key)
                complete = False
        self.settings = dataclasses.replace(self.settings, **updates)
        return complete

    def is_dt_change_significant(self, dt):
        """Whether ``dt`` differs from the last used interval by more than the factor."""
        if self.previous_dt == 0.0:
            return True
        factor = self.settings.dt_change_significance_factor
        return dt > self.previous_dt * factor or dt < self.previous_dt / factor

    def filter_pose(self, raw_pose, scale):
        """Feed a raw 4x4 pose with uniform ``scale`` and return the smoothed pose."""
        start = time.perf_counter()
        pose = np.asarray(raw_pose, dtype=np.float32)
        scale = _f32(scale)
        translation = get_translation(pose)
        rotation = extract_rotation_without_scale(pose.astype(np.float64), scale)
        quaternion = rotation_matrix_to_quaternion(rotation)

        if self.is_first_pose:
            self.current_state = SmoothedPoseState(translation, quaternion, self._clock())
            self.second_pass_state = self.current_state.copy()
            self.is_first_pose = False
        else:
            self._update(translation, quaternion)

        logger.debug("Filtering took: %f seconds", time.perf_counter() - start)
        return construct_pose_matrix(
            self.second_pass_state.translation,
            self.second_pass_state.rotation,
            scale * np.identity(3),
        )

    def _update(self, translation, quaternion):
        now = self._clock()
        first = self.current_state
        dt = now - first.last_update_timestamp
        first.last_update_timestamp = now

        if self.is_dt_change_significant(dt):
            self.alpha = _f32(_smoothing_alpha(dt, self.settings.smoothing_time_constant))
            self.previous_dt = dt
        alpha = self.alpha

        first.translation = first.translation + alpha * (translation - first.translation)
        if float(np.dot(first.rotation, quaternion)) < 0.0:
            quaternion = -quaternion
        first.rotation = normalize_quaternion(slerp(first.rotation, quaternion, alpha))

        second = self.second_pass_state
        second.last_update_timestamp = now
        second.translation = second.translation + alpha * (first.translation - second.translation)
        target = first.rotation.copy()
        if float(np.dot(second.rotation, target)) < 0.0:
            target = -target
        second.rotation = slerp(second.rotation, target, alpha)