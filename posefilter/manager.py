"""Keeps one pose filter per tracked object."""

import threading

import numpy as np

from posefilter.ema_filter import ObjectPoseEMAFilter


class ObjectFilterManager:
    """Creates, hands out and removes per-object pose filters."""

    def __init__(self, setting_path="", filter_active=True):
        self.setting_path = setting_path
        self.filter_active = filter_active
        self._filters = {}
        self._lock = threading.Lock()

    def get_or_create_filter(self, obj_id):
        """Return the filter for ``obj_id``, creating it on first use."""
        if not self.filter_active:
            raise RuntimeError("Object filtering is not active.")
        with self._lock:
            found = self._filters.get(obj_id)
            if found is None:
                found = ObjectPoseEMAFilter(self.setting_path)
                self._filters[obj_id] = found
            return found

    def filter_object_pose(self, obj_id, raw_pose, scale):
        """Smooth ``raw_pose`` with the object's filter, or return it unchanged when inactive."""
        if not self.filter_active:
            return np.array(raw_pose, dtype=np.float32)
        return self.get_or_create_filter(obj_id).filter_pose(raw_pose, scale)

    def remove_filter(self, obj_id):
        """Forget the filter for ``obj_id`` if there is one."""
        self._filters.pop(obj_id, None)

    def has_filter(self, obj_id):
        return obj_id in self._filters